from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import typer

from models.records import HistoryEntry
from services.orchestrator import RunReport
from services.queries import SensorStatus


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def format_ms(value: Optional[int]) -> str:
    if not value:
        return "never"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def render_report(report: RunReport) -> None:
    summary = report.summary
    echo_heading("Sync Summary")
    echo_key_values(
        [
            ("window", f"{format_ms(summary.start_time)} .. {format_ms(summary.end_time)}"),
            ("sensors", f"{summary.successful_sensors}/{summary.sensor_count}"),
            ("new_records", summary.total_new_records),
            ("history_saved", report.history_written),
        ]
    )

    typer.echo()
    echo_heading("Sensors")
    for outcome in report.outcomes:
        if outcome.succeeded:
            typer.echo(
                f"  - {outcome.sensor_key}: fetched={outcome.fetched} new={outcome.appended}"
            )
        else:
            typer.secho(
                f"  - {outcome.sensor_key}: failed ({outcome.error})",
                fg=typer.colors.RED,
            )


def render_status(rows: Iterable[SensorStatus]) -> None:
    echo_heading("Sensor Status")
    for row in rows:
        latest = row.watermark.latest_value
        typer.echo(
            f"  - {row.sensor.key} ({row.sensor.name}): records={row.record_count} "
            f"last={format_ms(row.watermark.last_timestamp)} "
            f"latest={'n/a' if latest is None else f'{latest} {row.sensor.unit}'}"
        )


def render_history(entries: Iterable[HistoryEntry]) -> None:
    echo_heading("History")
    shown = False
    for entry in entries:
        shown = True
        typer.echo(f"{format_ms(entry.timestamp)}:")
        for sensor_key, value in sorted(entry.values.items()):
            typer.echo(f"  - {sensor_key}: {value}")
    if not shown:
        typer.echo("No history recorded.")
