"""Classify BOINC client log lines and count the task events they report.

Purpose:
    Follow the client's operational log (``stdoutdae.txt``) in a background
    thread and increment a counter per recognised event.
External Dependencies:
    ``watchdog`` wakes the follower when the log directory changes;
    ``prometheus_client`` counters hold the totals.
Fallback Semantics:
    Unrecognised lines are ignored. A matched line without its expected integer
    is logged and dropped. If the log cannot be opened at startup the watcher
    stops for good while the rest of the exporter keeps serving.
Timeout Strategy:
    The follow loop waits at most ``poll_interval`` seconds between reads so it
    keeps progressing when filesystem events are unavailable.
"""

from __future__ import annotations

import enum
import logging
import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from boinc_exporter.core.exceptions import ExtractionError, StreamOpenError
from boinc_exporter.monitoring.metrics.registry import BoincMetrics

from .log_follower import LogFollower

__all__ = [
    "DEFAULT_RULES",
    "LogCounterEvent",
    "LogEventRule",
    "LogEventWatcher",
    "WatcherState",
    "add_one",
    "classify_line",
    "first_integer",
]

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"\d+")


def add_one(remainder: str, pattern: str) -> int:
    """Count a line as a single occurrence."""
    return 1


def first_integer(remainder: str, pattern: str) -> int:
    """Return the first integer in ``remainder``.

    Raises:
        ExtractionError: If ``remainder`` contains no digits.
    """
    match = _INT_RE.search(remainder)
    if match is None:
        raise ExtractionError(pattern, remainder)
    try:
        return int(match.group())
    except ValueError as exc:
        # Digit runs beyond the interpreter's int conversion limit.
        raise ExtractionError(pattern, remainder) from exc


@dataclass(frozen=True)
class LogEventRule:
    """Substring ``pattern`` that increments the ``counter`` attribute of :class:`BoincMetrics`."""

    pattern: str
    counter: str
    extract: Callable[[str, str], int] = add_one


@dataclass(frozen=True)
class LogCounterEvent:
    rule: LogEventRule
    amount: int


# Evaluated in order; the first matching rule wins.
DEFAULT_RULES: tuple[LogEventRule, ...] = (
    LogEventRule("Scheduler request complete: got", "task_assigned", first_integer),
    LogEventRule("Starting task", "task_started"),
    LogEventRule("Computation for task", "task_completed"),
    LogEventRule("Finished upload of", "task_uploaded"),
    LogEventRule("Finished download of", "task_downloaded"),
)


def classify_line(
    line: str, rules: Sequence[LogEventRule] = DEFAULT_RULES
) -> Optional[LogCounterEvent]:
    """Return the event for the first rule matching ``line``, or ``None``.

    Raises:
        ExtractionError: If the first matching rule cannot extract its amount.
    """
    for rule in rules:
        index = line.find(rule.pattern)
        if index < 0:
            continue
        return LogCounterEvent(rule=rule, amount=rule.extract(line[index:], rule.pattern))
    return None


class WatcherState(enum.Enum):
    NOT_STARTED = "not_started"
    FOLLOWING = "following"
    STOPPED = "stopped"


class _WakeOnChange(FileSystemEventHandler):
    """Set ``wake`` whenever the followed file is touched."""

    def __init__(self, path: Path, wake: threading.Event) -> None:
        self.target = os.path.abspath(path)
        self.wake = wake

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = {os.path.abspath(os.fsdecode(event.src_path))}
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.add(os.path.abspath(os.fsdecode(dest_path)))
        if self.target in paths:
            self.wake.set()


class LogEventWatcher:
    """Follow the client log in a daemon thread and count recognised events."""

    def __init__(
        self,
        path: Union[str, Path],
        metrics: BoincMetrics,
        rules: Sequence[LogEventRule] = DEFAULT_RULES,
        poll_interval: float = 1.0,
        from_start: bool = False,
        use_filesystem_events: bool = True,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.path = Path(path)
        self.metrics = metrics
        self.rules = tuple(rules)
        self.poll_interval = poll_interval
        self.use_filesystem_events = use_filesystem_events
        self.follower = LogFollower(self.path, from_start=from_start)
        self.state = WatcherState.NOT_STARTED

        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._observer: Optional[Observer] = None

    def start(self) -> bool:
        """Attach to the log and start following it.

        Returns ``False`` when the log cannot be opened; the watcher is then
        permanently stopped.
        """
        if self.state is not WatcherState.NOT_STARTED:
            raise RuntimeError(f"Log watcher already {self.state.value}")

        try:
            self.follower.open()
        except StreamOpenError as exc:
            logger.error("failed to tail logfile, no metrics will be collected: %s", exc)
            self.state = WatcherState.STOPPED
            self.metrics.log_watcher_up.set(0)
            return False

        if self.use_filesystem_events:
            self._start_observer()

        self.state = WatcherState.FOLLOWING
        self.metrics.log_watcher_up.set(1)
        self._thread = threading.Thread(
            target=self._run,
            name="boinc-log-watcher",
            daemon=True,
        )
        self._thread.start()
        return True

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the follow loop and release the log handle."""
        self._stop_event.set()
        self._wake.set()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

        self.follower.close()
        self.state = WatcherState.STOPPED
        self.metrics.log_watcher_up.set(0)

    def poll_once(self) -> int:
        """Process the next batch of appended lines and return how many there were."""
        lines = self.follower.read_lines()
        for line in lines:
            try:
                self.process_line(line)
            except Exception:
                logger.exception("Failed to process log line from %s: %.200s", self.path, line)
        return len(lines)

    def process_line(self, line: str) -> Optional[LogCounterEvent]:
        """Classify ``line`` and apply the resulting counter increment."""
        try:
            event = classify_line(line, self.rules)
        except ExtractionError as exc:
            self.metrics.log_extraction_errors.inc()
            logger.warning("%s: %s", exc, exc.line[:200])
            return None

        if event is not None:
            getattr(self.metrics, event.rule.counter).inc(event.amount)
        return event

    def _start_observer(self) -> None:
        observer = Observer()
        handler = _WakeOnChange(self.path, self._wake)
        try:
            observer.schedule(handler, str(self.path.parent), recursive=False)
            observer.start()
        except OSError as exc:
            logger.warning(
                "Filesystem events unavailable for %s, polling every %ss: %s",
                self.path,
                self.poll_interval,
                exc,
            )
            return
        self._observer = observer

    def _run(self) -> None:
        logger.info("Log watcher started for %s", self.path)
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except OSError as exc:
                logger.warning("Error reading %s, will retry: %s", self.path, exc)
            except Exception:
                logger.exception("Unexpected error following %s, will retry", self.path)
            if self.follower.has_pending:
                continue
            self._wake.wait(self.poll_interval)
            self._wake.clear()
        logger.info("Log watcher stopped for %s", self.path)
