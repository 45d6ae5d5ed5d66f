from __future__ import annotations

from typing import Callable, Optional, TypeVar

import typer

from cli.render import render_records, render_replication, render_status
from datastore.timeseries import build_default_table
from logging_config import configure_logging
from services.errors import SensorlogError
from services.monitor import build_default_monitor
from services.replicator import build_default_replicator

T = TypeVar("T")

app = typer.Typer(
    help="Scheduled jobs for the sensor history: replication and staleness checks.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _run(action: Callable[[], T]) -> T:
    try:
        return action()
    except SensorlogError as exc:
        typer.secho(f"{type(exc).__name__}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging(log_level.upper() if log_level else None)


@app.command("replicate")
def replicate_command() -> None:
    """Replay revisions committed since the last checkpoint into the store."""
    written = _run(lambda: build_default_replicator().run())
    render_replication(written)


@app.command("check")
def check_command() -> None:
    """Check the latest record's age and send an alert if it is stale."""
    status = _run(lambda: build_default_monitor().check())
    render_status(status)


@app.command("records")
def records_command(
    limit: int = typer.Option(
        10,
        "--limit",
        "-n",
        min=1,
        help="Number of most recent records to show.",
    ),
) -> None:
    """Show the most recent records held by the time-series store."""
    records = _run(lambda: build_default_table().scan())
    render_records(records[-limit:])
