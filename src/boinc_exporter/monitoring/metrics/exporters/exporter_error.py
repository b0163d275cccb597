"""Base exception for the metrics exposition layer."""

from __future__ import annotations

from boinc_exporter.core.exceptions import BoincExporterError

__all__ = ["ExporterError"]


class ExporterError(BoincExporterError):
    """Base exception class for all exporter-related errors."""

    def __init__(self, message: str, error_code: str = "EXPORTER_ERROR") -> None:
        """Store the message describing the exporter failure."""
        super().__init__(message, error_code=error_code)
