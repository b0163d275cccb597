"""Sub-command groups for the BOINC exporter CLI."""
