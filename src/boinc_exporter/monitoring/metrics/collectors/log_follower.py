"""Incremental reader for an append-only log file that survives rotation."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from boinc_exporter.core.exceptions import StreamOpenError

__all__ = ["LogFollower"]

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 1024 * 1024
DEFAULT_MAX_LINE_BYTES = 64 * 1024


class LogFollower:
    """Return newly appended lines of ``path`` on each :meth:`read_lines` call.

    The follower remembers its byte offset and the inode it opened. When the
    file shrinks below that offset it was truncated and is re-read from the
    start. When the inode changes, or the path disappears and comes back, the
    old handle is drained and the new file is read from the start.

    Each call reads at most ``read_size`` bytes; :attr:`has_pending` tells the
    caller more data was left behind. A line longer than ``max_line_bytes``
    is dropped rather than buffered.
    """

    def __init__(
        self,
        path: Union[str, Path],
        from_start: bool = False,
        encoding: str = "utf-8",
        read_size: int = DEFAULT_READ_SIZE,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ) -> None:
        if read_size <= 0 or max_line_bytes <= 0:
            raise ValueError("read_size and max_line_bytes must be positive")

        self.path = Path(path)
        self.from_start = from_start
        self.encoding = encoding
        self.read_size = read_size
        self.max_line_bytes = max_line_bytes
        self._file: Optional[BinaryIO] = None
        self._inode: Optional[int] = None
        self._offset = 0
        self._partial = b""
        self._skipping = False
        self._pending = False
        self.reopen_count = 0

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def has_pending(self) -> bool:
        """Whether the last read stopped at ``read_size`` with more data likely waiting."""
        return self._pending

    def open(self) -> None:
        """Attach to the log file, positioned at its end unless ``from_start``.

        Raises:
            StreamOpenError: If the file cannot be opened.
        """
        try:
            self._attach(seek_end=not self.from_start)
        except OSError as exc:
            raise StreamOpenError(str(self.path), cause=exc) from exc
        logger.info("Following %s from offset %s", self.path, self._offset)

    def read_lines(self) -> List[str]:
        """Return complete lines appended since the previous call, one read chunk at a time."""
        lines: List[str] = []

        if self._file is None:
            if not self._try_reattach():
                return lines

        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            # Rotated away and not yet recreated: finish the old handle.
            lines.extend(self._drain())
            if self._pending:
                return lines
            self._detach(flush_partial=True, into=lines)
            return lines

        if stat.st_ino != self._inode:
            lines.extend(self._drain())
            if self._pending:
                return lines
            self._detach(flush_partial=True, into=lines)
            if self._try_reattach():
                lines.extend(self._drain())
            return lines

        if stat.st_size < self._offset:
            logger.info("%s was truncated, reading from the start", self.path)
            self._file.seek(0)
            self._offset = 0
            self._partial = b""
            self._skipping = False
            self.reopen_count += 1

        lines.extend(self._drain())
        return lines

    def close(self) -> None:
        self._detach(flush_partial=False)

    def _attach(self, seek_end: bool) -> None:
        handle = open(self.path, "rb")
        try:
            stat = os.fstat(handle.fileno())
            if seek_end:
                handle.seek(0, os.SEEK_END)
        except OSError:
            handle.close()
            raise
        self._file = handle
        self._inode = stat.st_ino
        self._offset = handle.tell()
        self._partial = b""
        self._skipping = False

    def _try_reattach(self) -> bool:
        try:
            self._attach(seek_end=False)
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to reopen %s: %s", self.path, exc)
            return False

        self.reopen_count += 1
        logger.info("Reopened %s after rotation", self.path)
        return True

    def _detach(self, flush_partial: bool, into: Optional[List[str]] = None) -> None:
        if flush_partial and self._partial and not self._skipping and into is not None:
            into.append(self._decode(self._partial))
        self._partial = b""
        self._skipping = False
        self._pending = False
        if self._file is not None:
            self._file.close()
        self._file = None
        self._inode = None
        self._offset = 0

    def _drain(self) -> List[str]:
        self._pending = False
        if self._file is None:
            return []

        data = self._file.read(self.read_size)
        if not data:
            return []
        self._offset = self._file.tell()
        self._pending = len(data) == self.read_size

        chunks = (self._partial + data).split(b"\n")
        self._partial = chunks.pop()
        if self._skipping and chunks:
            # Tail of a line that was already dropped.
            chunks.pop(0)
            self._skipping = False
        if len(self._partial) > self.max_line_bytes:
            logger.warning(
                "Dropping line longer than %s bytes in %s",
                self.max_line_bytes,
                self.path,
            )
            self._partial = b""
            self._skipping = True
        return [self._decode(chunk) for chunk in chunks]

    def _decode(self, raw: bytes) -> str:
        return raw.rstrip(b"\r").decode(self.encoding, errors="replace")
