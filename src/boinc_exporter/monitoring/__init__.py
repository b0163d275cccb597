"""Monitoring subsystem."""
