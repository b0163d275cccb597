"""Assemble the exporter components from an :class:`ExporterConfig`."""

from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import CollectorRegistry

from boinc_exporter.client_state import StateSnapshotReader
from boinc_exporter.config import ExporterConfig
from boinc_exporter.monitoring.metrics import BoincMetrics
from boinc_exporter.monitoring.metrics.collectors import LogEventWatcher, StateSyncer
from boinc_exporter.monitoring.metrics.exporters import PrometheusExporter

__all__ = ["ExporterRuntime"]

logger = logging.getLogger(__name__)


class ExporterRuntime:
    """Own the registry, the state syncer, the log watcher and the HTTP endpoint.

    The registry is created once here and passed by reference to both
    collectors; nothing else shares it.
    """

    def __init__(
        self,
        config: ExporterConfig,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self.config = config
        self.metrics = BoincMetrics(registry)
        self.reader = StateSnapshotReader(
            config.state_file,
            read_timeout=config.read_timeout_seconds,
        )
        self.syncer = StateSyncer(
            self.reader,
            self.metrics,
            prune_stale=config.prune_stale,
            cache_seconds=config.cache_seconds,
        )
        self.watcher: Optional[LogEventWatcher] = None
        if config.log_watching_enabled:
            self.watcher = LogEventWatcher(
                config.log_file,
                self.metrics,
                poll_interval=config.log_poll_interval,
                from_start=config.log_from_start,
            )
        self.exporter = PrometheusExporter(
            self.metrics.registry,
            before_scrape=self.syncer.sync,
            endpoint=config.metrics_path,
            port=config.port,
            host=config.host,
        )

    def start(self) -> None:
        """Start the log watcher (when configured) and bind the HTTP server.

        Raises:
            ExportError: If the HTTP server cannot bind its port.
        """
        if self.watcher is not None:
            self.watcher.start()
        else:
            logger.info("No log file configured, task event counters disabled")

        try:
            self.exporter.initialize()
        except Exception:
            self.stop()
            raise

    def serve_forever(self) -> None:
        self.exporter.serve_forever()

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
        self.exporter.close()
        self.reader.close()
