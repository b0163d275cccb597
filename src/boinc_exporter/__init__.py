"""Prometheus exporter for the BOINC volunteer computing client."""

__version__ = "0.1.0"

__all__ = ["__version__"]
