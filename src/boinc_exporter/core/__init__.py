"""Core primitives shared across the exporter."""
