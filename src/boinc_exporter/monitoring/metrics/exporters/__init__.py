"""Metrics exposition layer."""

from .exporter_error import ExporterError
from .export_error import ExportError
from .prometheus import PrometheusExporter, ThreadedWSGIServer

__all__ = [
    "ExporterError",
    "ExportError",
    "PrometheusExporter",
    "ThreadedWSGIServer",
]
