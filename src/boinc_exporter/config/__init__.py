"""Exporter configuration."""

from .settings import ExporterConfig, load_config

__all__ = ["ExporterConfig", "load_config"]
