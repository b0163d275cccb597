"""
Core Exceptions for the BOINC exporter.

This module defines the exception classes raised while turning the BOINC
client's state file and log stream into metrics. Each exception carries a
descriptive message, an error code for programmatic handling and a context
mapping to aid troubleshooting.

The exceptions are organized into categories:
- State File Exceptions (reading and parsing ``client_state.xml``)
- Log Stream Exceptions (following ``stdoutdae.txt``)
- Configuration Exceptions
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BoincExporterError(Exception):
    """Base exception class for all BOINC exporter errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize a BOINC exporter error.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional context information for debugging
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

        logger.debug("BoincExporterError: %s", message, extra={
            "error_code": error_code,
            "context": context,
        })


# State File Exceptions

class StateFileError(BoincExporterError):
    """Base exception for state file errors."""
    pass


class ReadError(StateFileError):
    """Raised when the state file cannot be opened or read."""

    def __init__(self, path: str, message: Optional[str] = None, cause: Optional[Exception] = None):
        """
        Initialize a read error.

        Args:
            path: Path of the file that could not be read
            message: Optional custom message
            cause: Optional underlying exception that caused this error
        """
        self.path = path
        self.cause = cause
        default_message = f"Failed to read '{path}'"
        if cause:
            default_message += f": {cause}"

        super().__init__(
            message or default_message,
            error_code="STATE_READ_ERROR",
            context={"path": path, "cause": str(cause) if cause else None},
        )


class ParseError(StateFileError):
    """Raised when the state file content is not a well-formed client state document."""

    def __init__(self, message: str, path: Optional[str] = None, field: Optional[str] = None):
        """
        Initialize a parse error.

        Args:
            message: Description of the parse failure
            path: Optional path of the offending file
            field: Optional name of the field that could not be coerced
        """
        self.path = path
        self.field = field
        super().__init__(
            message,
            error_code="STATE_PARSE_ERROR",
            context={"path": path, "field": field},
        )


# Log Stream Exceptions

class LogStreamError(BoincExporterError):
    """Base exception for log stream errors."""
    pass


class ExtractionError(LogStreamError):
    """Raised when a matched log line does not carry the expected integer."""

    def __init__(self, pattern: str, line: str):
        """
        Initialize an extraction error.

        Args:
            pattern: The substring pattern that matched the line
            line: The remainder of the log line, starting at the match
        """
        self.pattern = pattern
        self.line = line
        super().__init__(
            f"expected integer in substring '{pattern}', but didn't find one",
            error_code="LOG_EXTRACTION_ERROR",
            context={"pattern": pattern, "line": line[:200]},
        )


class StreamOpenError(LogStreamError):
    """Raised when the log stream cannot be attached at startup."""

    def __init__(self, path: str, cause: Optional[Exception] = None):
        """
        Initialize a stream open error.

        Args:
            path: Path of the log file
            cause: Optional underlying exception
        """
        self.path = path
        self.cause = cause
        message = f"Failed to open log stream '{path}'"
        if cause:
            message += f": {cause}"
        super().__init__(
            message,
            error_code="LOG_STREAM_OPEN_ERROR",
            context={"path": path, "cause": str(cause) if cause else None},
        )


# Configuration Exceptions

class ConfigurationError(BoincExporterError):
    """Raised when exporter settings are missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        """
        Initialize a configuration error.

        Args:
            message: Description of the configuration problem
            setting: Optional name of the offending setting
        """
        self.setting = setting
        super().__init__(
            message,
            error_code="CONFIGURATION_ERROR",
            context={"setting": setting},
        )


__all__ = [
    "BoincExporterError",
    "StateFileError",
    "ReadError",
    "ParseError",
    "LogStreamError",
    "ExtractionError",
    "StreamOpenError",
    "ConfigurationError",
]
