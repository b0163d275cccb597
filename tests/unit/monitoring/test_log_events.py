"""Tests for log line classification and the log event watcher."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import pytest

from boinc_exporter.core.exceptions import ExtractionError
from boinc_exporter.monitoring.metrics import BoincMetrics
from boinc_exporter.monitoring.metrics.collectors import (
    DEFAULT_RULES,
    LogEventRule,
    LogEventWatcher,
    WatcherState,
    classify_line,
)

PREFIX = "19-Oct-2026 10:15:02 [Einstein@Home] "


def _counter(metrics: BoincMetrics, name: str) -> float:
    return metrics.registry.get_sample_value(f"{name}_total")


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.mark.parametrize(
    ("line", "counter", "amount"),
    [
        (PREFIX + "Scheduler request complete: got 3 new tasks", "task_assigned", 3),
        (PREFIX + "Scheduler request complete: got 0 new tasks", "task_assigned", 0),
        (PREFIX + "Starting task h1_0420.15_O3aC01Cl1In0__O3AS1a_420.50Hz_1_1", "task_started", 1),
        (PREFIX + "Computation for task h1_0420.15 finished", "task_completed", 1),
        (PREFIX + "Finished upload of h1_0420.15_0", "task_uploaded", 1),
        (PREFIX + "Finished download of templates_420.dat", "task_downloaded", 1),
    ],
)
def test_classify_recognised_lines(line: str, counter: str, amount: int) -> None:
    event = classify_line(line)

    assert event is not None
    assert event.rule.counter == counter
    assert event.amount == amount


def test_classify_ignores_other_lines() -> None:
    assert classify_line(PREFIX + "Sending scheduler request: To fetch work.") is None
    assert classify_line("") is None


def test_integer_is_taken_after_the_match() -> None:
    # The timestamp digits precede the pattern and must not be picked up.
    event = classify_line("19-Oct-2026 Scheduler request complete: got 12 new tasks")
    assert event.amount == 12


def test_missing_integer_raises_extraction_error() -> None:
    with pytest.raises(ExtractionError) as excinfo:
        classify_line(PREFIX + "Scheduler request complete: got no new tasks")
    assert excinfo.value.pattern == "Scheduler request complete: got"


def test_first_matching_rule_wins() -> None:
    event = classify_line("Starting task x after Finished upload of y")
    assert event.rule.counter == "task_started"

    assert [rule.pattern for rule in DEFAULT_RULES] == [
        "Scheduler request complete: got",
        "Starting task",
        "Computation for task",
        "Finished upload of",
        "Finished download of",
    ]


def test_process_line_increments_exactly_one_counter(tmp_path: Path, metrics: BoincMetrics) -> None:
    watcher = LogEventWatcher(tmp_path / "stdoutdae.txt", metrics)

    watcher.process_line("Starting task x; Finished upload of y")
    watcher.process_line(PREFIX + "Scheduler request complete: got 3 new tasks")

    assert _counter(metrics, "boinc_task_started") == 1.0
    assert _counter(metrics, "boinc_task_uploaded") == 0.0
    assert _counter(metrics, "boinc_task_assigned") == 3.0


def test_process_line_logs_and_skips_extraction_errors(
    tmp_path: Path, metrics: BoincMetrics, caplog: pytest.LogCaptureFixture
) -> None:
    watcher = LogEventWatcher(tmp_path / "stdoutdae.txt", metrics)

    with caplog.at_level(logging.WARNING):
        assert watcher.process_line(PREFIX + "Scheduler request complete: got no new tasks") is None

    assert _counter(metrics, "boinc_task_assigned") == 0.0
    assert _counter(metrics, "boinc_exporter_log_extraction_errors") == 1.0
    assert "expected integer" in caplog.text


def test_start_fails_softly_when_log_missing(tmp_path: Path, metrics: BoincMetrics) -> None:
    watcher = LogEventWatcher(tmp_path / "missing.txt", metrics)

    assert watcher.start() is False
    assert watcher.state is WatcherState.STOPPED
    assert metrics.registry.get_sample_value("boinc_exporter_log_watcher_up") == 0.0

    with pytest.raises(RuntimeError):
        watcher.start()


def test_poll_once_only_counts_new_lines(tmp_path: Path, metrics: BoincMetrics) -> None:
    log = tmp_path / "stdoutdae.txt"
    log.write_text(PREFIX + "Starting task old\n")
    watcher = LogEventWatcher(log, metrics, use_filesystem_events=False)
    watcher.follower.open()

    with log.open("a") as handle:
        handle.write(PREFIX + "Starting task new\n")
        handle.write(PREFIX + "Finished download of file\n")

    assert watcher.poll_once() == 2
    assert _counter(metrics, "boinc_task_started") == 1.0
    assert _counter(metrics, "boinc_task_downloaded") == 1.0
    watcher.follower.close()


def test_from_start_counts_backlog(tmp_path: Path, metrics: BoincMetrics) -> None:
    log = tmp_path / "stdoutdae.txt"
    log.write_text(PREFIX + "Starting task old\n")
    watcher = LogEventWatcher(log, metrics, from_start=True, use_filesystem_events=False)
    watcher.follower.open()

    watcher.poll_once()

    assert _counter(metrics, "boinc_task_started") == 1.0
    watcher.follower.close()


@pytest.mark.parametrize("use_filesystem_events", [True, False])
def test_watcher_thread_follows_appends_and_truncation(
    tmp_path: Path, metrics: BoincMetrics, use_filesystem_events: bool
) -> None:
    log = tmp_path / "stdoutdae.txt"
    log.write_text(PREFIX + "Starting task before-start\n" * 3)
    watcher = LogEventWatcher(
        log,
        metrics,
        poll_interval=0.05,
        use_filesystem_events=use_filesystem_events,
    )

    assert watcher.start() is True
    try:
        assert watcher.state is WatcherState.FOLLOWING
        assert metrics.registry.get_sample_value("boinc_exporter_log_watcher_up") == 1.0

        with log.open("a") as handle:
            handle.write(PREFIX + "Computation for task a finished\n")
        assert _wait_for(lambda: _counter(metrics, "boinc_task_completed") == 1.0)

        log.write_text("")
        with log.open("a") as handle:
            handle.write(PREFIX + "Finished upload of a\n")
        assert _wait_for(lambda: _counter(metrics, "boinc_task_uploaded") == 1.0)
        assert _counter(metrics, "boinc_task_started") == 0.0
    finally:
        watcher.stop()

    assert watcher.state is WatcherState.STOPPED
    assert metrics.registry.get_sample_value("boinc_exporter_log_watcher_up") == 0.0


def test_watcher_thread_survives_rotation(tmp_path: Path, metrics: BoincMetrics) -> None:
    log = tmp_path / "stdoutdae.txt"
    log.write_text("")
    watcher = LogEventWatcher(log, metrics, poll_interval=0.05)

    assert watcher.start() is True
    try:
        with log.open("a") as handle:
            handle.write(PREFIX + "Starting task a\n")
        assert _wait_for(lambda: _counter(metrics, "boinc_task_started") == 1.0)

        log.rename(tmp_path / "stdoutdae.old")
        log.write_text(PREFIX + "Starting task b\n")
        assert _wait_for(lambda: _counter(metrics, "boinc_task_started") == 2.0)
    finally:
        watcher.stop()


def test_invalid_poll_interval_rejected(tmp_path: Path, metrics: BoincMetrics) -> None:
    with pytest.raises(ValueError):
        LogEventWatcher(tmp_path / "log", metrics, poll_interval=0)


def test_oversized_integer_is_an_extraction_error(tmp_path: Path, metrics: BoincMetrics) -> None:
    line = PREFIX + "Scheduler request complete: got " + "9" * 5000 + " new tasks"

    with pytest.raises(ExtractionError):
        classify_line(line)

    watcher = LogEventWatcher(tmp_path / "stdoutdae.txt", metrics)
    assert watcher.process_line(line) is None
    assert _counter(metrics, "boinc_exporter_log_extraction_errors") == 1.0
    assert _counter(metrics, "boinc_task_assigned") == 0.0


def test_failing_rule_does_not_stop_the_batch(tmp_path: Path, metrics: BoincMetrics) -> None:
    def _explode(remainder: str, pattern: str) -> int:
        raise RuntimeError("boom")

    log = tmp_path / "stdoutdae.txt"
    log.write_text("")
    rules = (LogEventRule("Broken", "task_assigned", _explode),) + DEFAULT_RULES
    watcher = LogEventWatcher(log, metrics, rules=rules, use_filesystem_events=False)
    watcher.follower.open()

    with log.open("a") as handle:
        handle.write("Broken line\n")
        handle.write(PREFIX + "Starting task a\n")

    assert watcher.poll_once() == 2
    assert _counter(metrics, "boinc_task_started") == 1.0
    watcher.follower.close()


def test_watcher_thread_keeps_running_after_bad_line(tmp_path: Path, metrics: BoincMetrics) -> None:
    log = tmp_path / "stdoutdae.txt"
    log.write_text("")
    watcher = LogEventWatcher(log, metrics, poll_interval=0.05, use_filesystem_events=False)

    assert watcher.start() is True
    try:
        with log.open("a") as handle:
            handle.write(PREFIX + "Scheduler request complete: got " + "9" * 5000 + "\n")
        assert _wait_for(lambda: _counter(metrics, "boinc_exporter_log_extraction_errors") == 1.0)

        with log.open("a") as handle:
            handle.write(PREFIX + "Starting task a\n")
        assert _wait_for(lambda: _counter(metrics, "boinc_task_started") == 1.0)
        assert watcher._thread.is_alive()
        assert watcher.state is WatcherState.FOLLOWING
    finally:
        watcher.stop()
