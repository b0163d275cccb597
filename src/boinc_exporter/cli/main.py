#!/usr/bin/env python3
"""
BOINC exporter command line interface

Entry point for running the Prometheus exporter and for inspecting what it
would publish from the BOINC client's state file.

Usage:
    boinc-exporter --help
    boinc-exporter serve [options]
    boinc-exporter state show [options]

Examples:
    boinc-exporter serve --port 9100 --log-file /var/lib/boinc-client/stdoutdae.txt
    boinc-exporter state show --state-file ./client_state.xml

Environment Variables:
    BOINC_CLIENT_STATE_XML: Path to client_state.xml
    BOINC_LOGFILE_PATH: Path to the client log; unset disables task counters
    METRICS_HTTP_PATH: HTTP path serving metrics (default /metrics)
    METRICS_HTTP_PORT: HTTP port (default 9100)
    BOINC_EXPORTER_CONFIG: Optional YAML configuration file
    BOINC_EXPORTER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
"""

import logging
import signal
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from boinc_exporter import __version__
from boinc_exporter.config import ExporterConfig, load_config
from boinc_exporter.core.exceptions import ConfigurationError
from boinc_exporter.core.utils.logging import resolve_log_level
from boinc_exporter.monitoring.metrics.exporters import ExportError
from boinc_exporter.runtime import ExporterRuntime

console = Console()

logging.basicConfig(
    level=resolve_log_level(),
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="boinc-exporter",
    help="Prometheus exporter for the BOINC client",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

# Shared options resolved by the callback.
state = {"config_path": None}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"boinc-exporter {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output.")] = False,
    config_path: Annotated[Optional[str], typer.Option("--config", "-c", help="Path to a YAML configuration file.")] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit."),
    ] = False,
):
    """
    BOINC client Prometheus exporter.
    """
    if verbose:
        logging.getLogger("boinc_exporter").setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")
    state["config_path"] = config_path
    ctx.obj = state


def resolve_config(**overrides) -> ExporterConfig:
    """Load the layered configuration, exiting with code 1 when it is invalid."""
    try:
        return load_config(state["config_path"], **overrides)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise typer.Exit(code=1)


def _raise_keyboard_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


@app.command()
def serve(
    state_file: Annotated[Optional[str], typer.Option("--state-file", "-s", help="Path to client_state.xml.")] = None,
    log_file: Annotated[Optional[str], typer.Option("--log-file", "-l", help="Path to the client log to follow.")] = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Address to bind.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind.")] = None,
    metrics_path: Annotated[Optional[str], typer.Option("--metrics-path", help="HTTP path serving metrics.")] = None,
) -> None:
    """
    Serve metrics until interrupted.
    """
    config = resolve_config(
        state_file=state_file,
        log_file=log_file,
        host=host,
        port=port,
        metrics_path=metrics_path,
    )
    if not logging.getLogger("boinc_exporter").isEnabledFor(logging.DEBUG):
        logging.getLogger("boinc_exporter").setLevel(resolve_log_level(config.log_level))

    logger.info("boinc-exporter %s reading %s", __version__, config.state_file)
    runtime = ExporterRuntime(config)
    try:
        runtime.start()
    except ExportError as e:
        logger.error("http server failed: %s", e)
        raise typer.Exit(code=1)

    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    try:
        runtime.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        runtime.stop()


from boinc_exporter.cli.commands.state import state_app  # noqa: E402

app.add_typer(state_app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
