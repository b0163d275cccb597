"""State CLI commands for the BOINC exporter.

Purpose:
    Let operators parse the client state file once and see exactly what the
    exporter would publish on the next scrape, without starting the server.
External Dependencies:
    Uses the `rich` console library for terminal rendering. Only the local
    state file is read.
Fallback Semantics:
    Read or parse failures are printed and the command exits with code 1.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from boinc_exporter.client_state import ClientState, StateSnapshotReader
from boinc_exporter.config import load_config
from boinc_exporter.core.exceptions import ConfigurationError, StateFileError

logger = logging.getLogger(__name__)
console = Console()

state_app = typer.Typer(name="state", help="Inspect the BOINC client state file.")


def _format_timestamp(value: float) -> str:
    """Render a unix timestamp as UTC, or a dash when unset."""
    if not value:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _render_results_table(snapshot: ClientState) -> Table:
    table = Table(title="Results", show_header=True, header_style="bold cyan")
    table.add_column("Name", overflow="fold")
    table.add_column("Report deadline")
    table.add_column("Received")
    table.add_column("Version", justify="right")

    for result in snapshot.results:
        table.add_row(
            result.name,
            _format_timestamp(result.report_deadline),
            _format_timestamp(result.received_time),
            str(result.version_number),
        )
    return table


def _render_active_tasks_table(snapshot: ClientState) -> Table:
    table = Table(title="Active tasks", show_header=True, header_style="bold cyan")
    table.add_column("Name", overflow="fold")
    table.add_column("Fraction done", justify="right")
    table.add_column("Elapsed (s)", justify="right")

    for task in snapshot.active_tasks:
        table.add_row(task.name, f"{task.fraction_done:.2%}", f"{task.elapsed_time:.1f}")
    return table


@state_app.command("show")
def show(
    ctx: typer.Context,
    state_file: Annotated[Optional[str], typer.Option("--state-file", "-s", help="Path to client_state.xml.")] = None,
    config_path: Annotated[Optional[str], typer.Option("--config", "-c", help="Path to a YAML configuration file.")] = None,
) -> None:
    """
    Parse the state file and print the results and active tasks it lists.
    """
    if config_path is None and ctx.obj:
        config_path = ctx.obj.get("config_path")

    try:
        config = load_config(config_path, state_file=state_file)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {escape(str(e))}")
        raise typer.Exit(code=1)

    reader = StateSnapshotReader(config.state_file, read_timeout=config.read_timeout_seconds)
    try:
        snapshot = reader.read()
    except StateFileError as e:
        console.print(f"[red]Failed to load state file:[/] {escape(str(e))}")
        raise typer.Exit(code=1)
    finally:
        reader.close()

    console.print(f"[bold]Domain:[/] {escape(snapshot.domain_name) or '-'}")
    console.print(_render_results_table(snapshot))
    console.print(_render_active_tasks_table(snapshot))
    console.print(f"[bold]Active task count:[/] {snapshot.active_task_count}")
