from __future__ import annotations

from typing import Any, Iterable, Sequence

import typer

from app.schemas import MonitorStatus
from models.records import Record

_STATUS_COLORS = {
    MonitorStatus.healthy: typer.colors.GREEN,
    MonitorStatus.stale_alerting: typer.colors.RED,
    MonitorStatus.stale_suppressed: typer.colors.YELLOW,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_replication(records_written: int) -> None:
    typer.secho(f"Replication complete. records_written={records_written}", fg=typer.colors.GREEN)


def render_status(status: MonitorStatus) -> None:
    typer.secho(f"status: {status.value}", fg=_STATUS_COLORS[status])


def render_records(records: Sequence[Record]) -> None:
    echo_heading("Records")
    if not records:
        typer.echo("No records stored.")
        return
    for record in records:
        typer.echo(record.timestamp.isoformat())
        echo_key_values(
            [(f"  {name}", value) for name, value in sorted(record.tags.items())]
            + [(f"  {name}", value) for name, value in sorted(record.fields.items())]
        )
