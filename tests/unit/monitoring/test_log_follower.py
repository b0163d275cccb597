"""Tests for the rotation-aware log follower."""

from __future__ import annotations

from pathlib import Path

import pytest

from boinc_exporter.core.exceptions import StreamOpenError
from boinc_exporter.monitoring.metrics.collectors import LogFollower


@pytest.fixture
def log(tmp_path: Path) -> Path:
    path = tmp_path / "stdoutdae.txt"
    path.write_text("old line\n")
    return path


def _append(path: Path, text: str) -> None:
    with path.open("a", newline="") as handle:
        handle.write(text)


def test_open_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(StreamOpenError):
        LogFollower(tmp_path / "missing.txt").open()


def test_starts_at_end_of_file(log: Path) -> None:
    follower = LogFollower(log)
    follower.open()

    assert follower.read_lines() == []
    _append(log, "first\nsecond\n")
    assert follower.read_lines() == ["first", "second"]
    assert follower.read_lines() == []
    follower.close()


def test_from_start_reads_backlog(log: Path) -> None:
    follower = LogFollower(log, from_start=True)
    follower.open()

    assert follower.read_lines() == ["old line"]
    follower.close()


def test_partial_lines_wait_for_newline(log: Path) -> None:
    follower = LogFollower(log)
    follower.open()

    _append(log, "Starting ta")
    assert follower.read_lines() == []
    _append(log, "sk x\r\n")
    assert follower.read_lines() == ["Starting task x"]
    follower.close()


def test_truncation_rereads_from_start(log: Path) -> None:
    follower = LogFollower(log)
    follower.open()
    _append(log, "a much longer line than what follows\n")
    follower.read_lines()

    log.write_text("short\n")
    assert follower.read_lines() == ["short"]
    assert follower.reopen_count == 1
    follower.close()


def test_rotation_drains_old_file_then_follows_new(log: Path, tmp_path: Path) -> None:
    follower = LogFollower(log)
    follower.open()
    _append(log, "before rotation\nunterminated")

    log.rename(tmp_path / "stdoutdae.old")
    log.write_text("after rotation\n")

    assert follower.read_lines() == ["before rotation", "unterminated", "after rotation"]
    follower.close()


def test_missing_file_is_reattached_when_recreated(log: Path, tmp_path: Path) -> None:
    follower = LogFollower(log)
    follower.open()

    log.rename(tmp_path / "stdoutdae.old")
    assert follower.read_lines() == []
    assert not follower.is_open
    assert follower.read_lines() == []

    log.write_text("recreated\n")
    assert follower.read_lines() == ["recreated"]
    assert follower.is_open
    follower.close()


def test_invalid_bytes_are_replaced(log: Path) -> None:
    follower = LogFollower(log)
    follower.open()
    with log.open("ab") as handle:
        handle.write(b"caf\xe9\n")

    assert follower.read_lines() == ["caf�"]
    follower.close()


def test_backlog_is_read_in_bounded_chunks(log: Path) -> None:
    follower = LogFollower(log, from_start=True, read_size=8)
    follower.open()
    _append(log, "task-a\ntask-b\n")

    batches = []
    while True:
        batches.append(follower.read_lines())
        if not follower.has_pending:
            break

    assert all(len(batch) <= 2 for batch in batches)
    assert [line for batch in batches for line in batch] == ["old line", "task-a", "task-b"]
    follower.close()


def test_overlong_line_is_dropped(log: Path) -> None:
    follower = LogFollower(log, read_size=16, max_line_bytes=32)
    follower.open()
    _append(log, "x" * 100 + "\nStarting task y\n")

    lines = []
    while True:
        lines.extend(follower.read_lines())
        if not follower.has_pending:
            break

    assert lines == ["Starting task y"]
    follower.close()


def test_rotation_finishes_old_file_before_switching(log: Path, tmp_path: Path) -> None:
    follower = LogFollower(log, read_size=8)
    follower.open()
    _append(log, "first-line\nsecond-line\n")

    log.rename(tmp_path / "stdoutdae.old")
    log.write_text("after\n")

    lines = []
    for _ in range(10):
        lines.extend(follower.read_lines())
    assert lines == ["first-line", "second-line", "after"]
    follower.close()
