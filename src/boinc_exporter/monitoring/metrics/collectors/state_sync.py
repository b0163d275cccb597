"""Synchronise state-file derived gauges on every scrape."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from boinc_exporter.client_state import ClientState, StateSnapshotReader
from boinc_exporter.core.exceptions import ParseError, ReadError
from boinc_exporter.monitoring.metrics.registry import BoincMetrics

__all__ = ["StateSyncer"]

logger = logging.getLogger(__name__)


class StateSyncer:
    """Re-read the client state file and republish its gauges.

    The syncer is invoked synchronously by the HTTP layer before each scrape
    response is rendered. A failed read or parse publishes nothing for that
    cycle and propagates to the caller.

    With ``prune_stale`` enabled, label sets for results or active tasks that
    disappeared from the latest snapshot are removed from the registry;
    otherwise they keep their last published value.
    """

    def __init__(
        self,
        reader: StateSnapshotReader,
        metrics: BoincMetrics,
        prune_stale: bool = True,
        cache_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if cache_seconds < 0:
            raise ValueError("cache_seconds must not be negative")

        self.reader = reader
        self.metrics = metrics
        self.prune_stale = prune_stale
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._published_results: frozenset[str] = frozenset()
        self._published_tasks: frozenset[str] = frozenset()
        self._last_state: Optional[ClientState] = None
        self._last_sync: float = 0.0

    @property
    def last_state(self) -> Optional[ClientState]:
        """The snapshot published by the most recent successful sync."""
        return self._last_state

    def sync(self) -> ClientState:
        """Read the state file and publish it, returning the snapshot.

        Raises:
            ReadError: If the state file could not be read.
            ParseError: If the state file could not be parsed.
        """
        with self._lock:
            if self._cache_is_fresh():
                logger.debug("Reusing cached client state snapshot")
                return self._last_state

            try:
                state = self.reader.read()
            except ReadError as exc:
                self.metrics.state_sync_errors.labels(reason="read").inc()
                logger.warning("State sync failed: %s", exc)
                raise
            except ParseError as exc:
                self.metrics.state_sync_errors.labels(reason="parse").inc()
                logger.warning("State sync failed: %s", exc)
                raise

            self._publish(state)
            self._last_state = state
            self._last_sync = self._clock()
            self.metrics.state_last_sync_timestamp.set_to_current_time()
            return state

    def _cache_is_fresh(self) -> bool:
        if self.cache_seconds <= 0 or self._last_state is None:
            return False
        return self._clock() - self._last_sync < self.cache_seconds

    def _publish(self, state: ClientState) -> None:
        m = self.metrics

        m.hostinfo.info({"domain_name": state.domain_name})

        for result in state.results:
            m.result_deadline.labels(result.name).set(result.report_deadline)
            m.result_received_time.labels(result.name).set(result.received_time)
            m.result_version_num.labels(result.name).set(result.version_number)

        m.active_task_count.set(state.active_task_count)
        for task in state.active_tasks:
            m.active_task_elapsed_time.labels(task.name).set(task.elapsed_time)
            m.active_task_fraction_done.labels(task.name).set(task.fraction_done)

        result_names = state.result_names()
        task_names = state.active_task_names()
        if self.prune_stale:
            for name in self._published_results - result_names:
                m.result_deadline.remove(name)
                m.result_received_time.remove(name)
                m.result_version_num.remove(name)
            for name in self._published_tasks - task_names:
                m.active_task_elapsed_time.remove(name)
                m.active_task_fraction_done.remove(name)
            self._published_results = result_names
            self._published_tasks = task_names

        logger.debug(
            "Published %s results and %s active tasks",
            len(state.results),
            state.active_task_count,
        )
