"""Exception raised when the metrics endpoint cannot be served."""

from __future__ import annotations

from .exporter_error import ExporterError

__all__ = ["ExportError"]


class ExportError(ExporterError):
    """Raised when the exporter cannot start or serve its HTTP endpoint."""

    def __init__(self, message: str) -> None:
        """Initialise the export error with the failure description."""
        super().__init__(message, error_code="EXPORT_ERROR")
