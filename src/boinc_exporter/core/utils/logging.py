"""Logging helpers for the BOINC exporter.

Purpose:
    Resolve the effective log level from the environment or configuration.
External Dependencies:
    Uses only the Python standard library `logging` module. The CLI installs a
    `rich` handler on top of this.
Fallback Semantics:
    Unknown level names resolve to ``logging.INFO``.
Timeout Strategy:
    Not applicable; operations are in-process and non-blocking.
"""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV_VAR = "BOINC_EXPORTER_LOG_LEVEL"


def resolve_log_level(value: str | int | None = None) -> int:
    """Summary: Translate a level name (or the environment) into a logging level.
    Parameters:
        value: Level name such as ``"debug"``, a numeric level, or ``None`` to
            read ``BOINC_EXPORTER_LOG_LEVEL``.
    Returns:
        int: The numeric logging level, ``logging.INFO`` when unknown.
    """
    if isinstance(value, int):
        return value
    if value is None:
        value = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")

    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else logging.INFO


__all__ = ["LOG_LEVEL_ENV_VAR", "resolve_log_level"]
