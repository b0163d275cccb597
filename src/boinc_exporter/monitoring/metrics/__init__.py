"""Metrics registry, collectors and exporters for the BOINC exporter."""

from .registry import BoincMetrics

__all__ = ["BoincMetrics"]
