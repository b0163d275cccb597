"""
State snapshot reader.

Purpose:
    Read ``client_state.xml`` from disk and extract the host domain, the
    results and the active tasks into a :class:`ClientState`.
External Dependencies:
    Standard library ``xml.etree.ElementTree`` for parsing.
Fallback Semantics:
    The schema is a sparse subset extraction: any field missing from the
    document takes its zero value. Only I/O failures (``ReadError``) and
    malformed markup or uncoercible numeric values (``ParseError``) fail.
Timeout Strategy:
    File reads run on a small worker pool and are abandoned after
    ``read_timeout`` seconds so a stuck filesystem cannot block a scrape
    indefinitely.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union
from xml.etree import ElementTree as ET

from boinc_exporter.core.exceptions import ParseError, ReadError

from .models import ActiveTask, ClientState, Result

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = Path("/var/lib/boinc-client/client_state.xml")
DEFAULT_READ_TIMEOUT = 5.0

_T = TypeVar("_T")


def _child_text(element: Optional[ET.Element], tag: str) -> str:
    if element is None:
        return ""
    child = element.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _coerce(element: ET.Element, tag: str, convert: Callable[[str], _T], zero: _T) -> _T:
    raw = _child_text(element, tag)
    if not raw:
        return zero
    try:
        return convert(raw)
    except ValueError as exc:
        raise ParseError(f"Invalid value for <{tag}>: {raw!r}", field=tag) from exc


def _parse_result(element: ET.Element) -> Result:
    return Result(
        name=_child_text(element, "name"),
        report_deadline=_coerce(element, "report_deadline", float, 0.0),
        received_time=_coerce(element, "received_time", float, 0.0),
        version_number=_coerce(element, "version_num", int, 0),
    )


def _parse_active_task(element: ET.Element) -> ActiveTask:
    return ActiveTask(
        name=_child_text(element, "result_name"),
        fraction_done=_coerce(element, "checkpoint_fraction_done", float, 0.0),
        elapsed_time=_coerce(element, "checkpoint_elapsed_time", float, 0.0),
    )


def parse_client_state(content: Union[str, bytes]) -> ClientState:
    """Parse client state markup into a :class:`ClientState`.

    Raises:
        ParseError: If the document is not well-formed or a numeric field
            holds a value that cannot be converted.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ParseError(f"Malformed client state document: {exc}") from exc

    active_task_set = root.find("active_task_set")
    active_elements = active_task_set.findall("active_task") if active_task_set is not None else []

    return ClientState(
        domain_name=_child_text(root.find("host_info"), "domain_name"),
        results=tuple(_parse_result(element) for element in root.findall("result")),
        active_tasks=tuple(_parse_active_task(element) for element in active_elements),
    )


class StateSnapshotReader:
    """Read and parse the client state file on demand."""

    def __init__(
        self,
        path: Union[str, Path] = DEFAULT_STATE_FILE,
        read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.path = Path(path)
        self.read_timeout = read_timeout
        self._executor: Optional[ThreadPoolExecutor] = None
        if read_timeout is not None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="state-reader")

    def read(self) -> ClientState:
        """Return a freshly parsed snapshot of the state file.

        Raises:
            ReadError: If the file cannot be read within the timeout.
            ParseError: If the content is not a valid client state document.
        """
        content = self._read_bytes()
        try:
            state = parse_client_state(content)
        except ParseError as exc:
            exc.path = str(self.path)
            exc.context["path"] = str(self.path)
            raise

        logger.debug(
            "Parsed %s: %s results, %s active tasks",
            self.path,
            len(state.results),
            state.active_task_count,
        )
        return state

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def _read_bytes(self) -> bytes:
        if self._executor is None:
            return self._read_file()

        future = self._executor.submit(self._read_file)
        try:
            return future.result(timeout=self.read_timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ReadError(
                str(self.path),
                message=f"Timed out after {self.read_timeout}s reading '{self.path}'",
                cause=exc,
            ) from exc

    def _read_file(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise ReadError(str(self.path), cause=exc) from exc


__all__ = [
    "DEFAULT_READ_TIMEOUT",
    "DEFAULT_STATE_FILE",
    "StateSnapshotReader",
    "parse_client_state",
]
