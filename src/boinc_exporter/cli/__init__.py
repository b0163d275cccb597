"""Command line interface for the BOINC exporter."""
