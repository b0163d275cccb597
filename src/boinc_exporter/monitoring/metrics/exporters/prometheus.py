"""Prometheus scrape endpoint for the BOINC exporter."""

from __future__ import annotations

import logging
import threading
from socketserver import ThreadingMixIn
from typing import Any, Callable, Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import prometheus_client
from prometheus_client import CollectorRegistry

from boinc_exporter.core.exceptions import StateFileError

from .export_error import ExportError

__all__ = ["PrometheusExporter", "QuietWSGIRequestHandler", "ThreadedWSGIServer"]

logger = logging.getLogger(__name__)

WSGIApp = Callable[[dict[str, Any], Callable[..., Any]], Any]


class ThreadedWSGIServer(ThreadingMixIn, WSGIServer):
    """Serve each scrape on its own daemon thread."""

    daemon_threads = True
    allow_reuse_address = True


class QuietWSGIRequestHandler(WSGIRequestHandler):
    """Send access lines to the module logger at debug level instead of stderr."""

    def log_message(self, format: str, *args) -> None:  # noqa: A002 - matches base signature
        logger.debug("%s - %s", self.address_string(), format % args)


class PrometheusExporter:
    """Expose ``registry`` through a Prometheus scrape endpoint.

    ``before_scrape`` runs synchronously on every request to the endpoint,
    before the registry is rendered. A state file failure raised from it turns
    into a ``503`` response for that request only.
    """

    def __init__(
        self,
        registry: CollectorRegistry,
        before_scrape: Optional[Callable[[], Any]] = None,
        name: str = "prometheus",
        endpoint: str = "/metrics",
        port: int = 9100,
        host: str = "0.0.0.0",
    ) -> None:
        """Create the exporter; the HTTP server starts in :meth:`initialize`."""
        self.name = name
        self.registry = registry
        self.before_scrape = before_scrape
        self.endpoint = self._normalise_endpoint(endpoint)
        self.host = host
        self.port = port
        self._server: Optional[ThreadedWSGIServer] = None
        self._server_thread: Optional[threading.Thread] = None

        logger.info("Created Prometheus exporter on %s:%s at %s", host, port, self.endpoint)

    def make_app(self) -> WSGIApp:
        """Return the WSGI application serving the configured endpoint."""
        application = prometheus_client.make_wsgi_app(self.registry)
        return self._wrap_app_with_endpoint(application, self.endpoint, self.before_scrape)

    def initialize(self) -> None:
        """Bind the HTTP server and start serving in a daemon thread.

        Raises:
            ExportError: If the server cannot bind ``host:port``.
        """
        try:
            self._server = make_server(
                self.host,
                self.port,
                self.make_app(),
                server_class=ThreadedWSGIServer,
                handler_class=QuietWSGIRequestHandler,
            )
        except OSError as exc:
            logger.error("Failed to start metrics server on %s:%s: %s", self.host, self.port, exc)
            raise ExportError(
                f"Failed to start metrics server on {self.host}:{self.port}: {exc}"
            ) from exc

        self.port = self._server.server_port
        self._server_thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"{self.name}-prometheus-server",
            daemon=True,
        )
        self._server_thread.start()
        logger.info(
            "boinc-exporter listening on %s:%s at %s",
            self.host,
            self.port,
            self.endpoint,
        )

    def serve_forever(self) -> None:
        """Block until the server thread exits."""
        if self._server_thread is None:
            raise ExportError("Prometheus exporter has not been initialised")
        self._server_thread.join()

    def close(self) -> None:
        """Stop the HTTP server."""
        try:
            if self._server is not None:
                self._server.shutdown()
                self._server.server_close()
                if self._server_thread is not None and self._server_thread.is_alive():
                    self._server_thread.join(timeout=1.0)
        finally:
            self._server = None
            self._server_thread = None
        logger.info("Closed Prometheus exporter '%s'", self.name)

    @staticmethod
    def _normalise_endpoint(endpoint: str) -> str:
        """Return a scrape endpoint that always begins with ``/``."""
        if not endpoint:
            return "/metrics"

        cleaned = endpoint.strip() or "/metrics"
        if not cleaned.startswith("/"):
            cleaned = f"/{cleaned}"
        return cleaned

    @staticmethod
    def _wrap_app_with_endpoint(
        application: WSGIApp,
        endpoint: str,
        before_scrape: Optional[Callable[[], Any]] = None,
    ) -> WSGIApp:
        """Serve ``application`` on ``endpoint`` only, running ``before_scrape`` first."""
        normalised = endpoint or "/metrics"

        def _wrapped(environ: dict[str, Any], start_response: Callable[..., Any]) -> Any:
            path = environ.get("PATH_INFO", "")
            if normalised not in {"/", ""} and path != normalised:
                start_response(
                    "404 Not Found",
                    [("Content-Type", "text/plain; charset=utf-8")],
                )
                return [b"Not Found"]

            if before_scrape is not None:
                try:
                    before_scrape()
                except StateFileError as exc:
                    start_response(
                        "503 Service Unavailable",
                        [("Content-Type", "text/plain; charset=utf-8")],
                    )
                    return [f"state sync failed: {exc}\n".encode("utf-8")]

            environ = dict(environ)
            environ["PATH_INFO"] = "/"
            return application(environ, start_response)

        return _wrapped
