"""Components that feed the shared metrics registry."""

from .log_events import (
    DEFAULT_RULES,
    LogCounterEvent,
    LogEventRule,
    LogEventWatcher,
    WatcherState,
    classify_line,
)
from .log_follower import LogFollower
from .state_sync import StateSyncer

__all__ = [
    "DEFAULT_RULES",
    "LogCounterEvent",
    "LogEventRule",
    "LogEventWatcher",
    "LogFollower",
    "StateSyncer",
    "WatcherState",
    "classify_line",
]
