"""Metric families published by the exporter.

A single :class:`BoincMetrics` instance is created at startup around one
``prometheus_client.CollectorRegistry`` and handed to both the state syncer and
the log event watcher. Each component only writes the families it owns.
"""

from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Info

__all__ = ["BoincMetrics"]

logger = logging.getLogger(__name__)


class BoincMetrics:
    """Own the Prometheus metric families registered on ``registry``."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Create every metric family on ``registry`` (a fresh one when omitted)."""
        self.registry = registry if registry is not None else CollectorRegistry()

        # Derived from the state file on every scrape.
        self.hostinfo = Info(
            "boinc_hostinfo",
            "Name of the boinc client domain",
            registry=self.registry,
        )
        self.result_deadline = Gauge(
            "boinc_result_deadline",
            "unix time to deadline",
            ["name"],
            registry=self.registry,
        )
        self.result_received_time = Gauge(
            "boinc_result_received_time",
            "unix time received",
            ["name"],
            registry=self.registry,
        )
        self.result_version_num = Gauge(
            "boinc_result_version_num",
            "application version number of the result",
            ["name"],
            registry=self.registry,
        )
        self.active_task_count = Gauge(
            "boinc_active_task_count",
            "current number of tasks",
            registry=self.registry,
        )
        self.active_task_fraction_done = Gauge(
            "boinc_active_task_fraction_done",
            "percentage of task completed",
            ["name"],
            registry=self.registry,
        )
        self.active_task_elapsed_time = Gauge(
            "boinc_active_task_elapsed_time",
            "time spent working on active task",
            ["name"],
            registry=self.registry,
        )

        # Accumulated from the client log for the lifetime of the process.
        self.task_assigned = Counter(
            "boinc_task_assigned", "task assignments", registry=self.registry
        )
        self.task_started = Counter(
            "boinc_task_started", "task starting", registry=self.registry
        )
        self.task_completed = Counter(
            "boinc_task_completed", "task completed", registry=self.registry
        )
        self.task_uploaded = Counter(
            "boinc_task_uploaded", "task uploaded", registry=self.registry
        )
        self.task_downloaded = Counter(
            "boinc_task_downloaded", "task downloaded", registry=self.registry
        )

        # Exporter self-observability.
        self.state_sync_errors = Counter(
            "boinc_exporter_state_sync_errors",
            "state file reads that failed, by reason",
            ["reason"],
            registry=self.registry,
        )
        self.state_last_sync_timestamp = Gauge(
            "boinc_exporter_state_last_sync_timestamp_seconds",
            "unix time of the last successful state file sync",
            registry=self.registry,
        )
        self.log_extraction_errors = Counter(
            "boinc_exporter_log_extraction_errors",
            "matched log lines that lacked the expected integer",
            registry=self.registry,
        )
        self.log_watcher_up = Gauge(
            "boinc_exporter_log_watcher_up",
            "1 while the log watcher is following the client log",
            registry=self.registry,
        )

        logger.debug("Registered BOINC metric families")
