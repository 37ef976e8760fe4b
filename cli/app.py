from __future__ import annotations

from dataclasses import dataclass, replace
from typing import NoReturn, Optional, Sequence

import typer

from cli.render import render_history, render_report, render_status
from datastore.base import TreeStore
from datastore.factory import build_store
from errors import ConfigError, FatalMetadataError, StorageError
from logging_config import configure_logging
from models.records import SensorDescriptor
from sensors import load_catalog
from services.orchestrator import build_orchestrator
from services.queries import all_sensor_status, recent_history
from settings import Settings, get_settings


@dataclass
class CLIState:
    settings: Settings


app = typer.Typer(
    help="Incrementally sync LI-COR sensor readings into the backing store.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _open(
    settings: Settings, require_upstream: bool
) -> tuple[Sequence[SensorDescriptor], TreeStore]:
    try:
        settings.validate(require_upstream=require_upstream)
        sensors = load_catalog(settings.sensor_catalog_path)
    except ConfigError as exc:
        _fail(f"Configuration error: {exc}")
    try:
        store = build_store(settings)
    except StorageError as exc:
        _fail(f"Cannot open backing store: {exc}")
    return sensors, store


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    if log_level:
        settings = replace(settings, log_level=log_level.upper())
    configure_logging(settings.log_level)
    ctx.obj = CLIState(settings=settings)


@app.command("sync")
def sync_command(
    ctx: typer.Context,
    lookback_hours: Optional[float] = typer.Option(
        None,
        "--lookback-hours",
        min=0.01,
        help="Override the fetch window length (defaults to SYNC_LOOKBACK_HOURS or 2).",
    ),
) -> None:
    """Run one incremental sync over every configured sensor."""
    state = _get_state(ctx)
    settings = state.settings
    if lookback_hours is not None:
        settings = replace(settings, lookback_hours=lookback_hours)

    sensors, store = _open(settings, require_upstream=True)
    orchestrator = build_orchestrator(settings, sensors, store)
    try:
        report = orchestrator.run()
    except FatalMetadataError as exc:
        _fail(f"Run failed: {exc}")
    finally:
        orchestrator.close()

    render_report(report)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show each sensor's watermark and log size."""
    state = _get_state(ctx)
    sensors, store = _open(state.settings, require_upstream=False)
    try:
        rows = all_sensor_status(store, sensors)
    except StorageError as exc:
        _fail(f"Cannot read sensor status: {exc}")
    render_status(rows)


@app.command("history")
def history_command(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Number of entries to show."),
) -> None:
    """Show the newest history snapshots."""
    state = _get_state(ctx)
    _, store = _open(state.settings, require_upstream=False)
    try:
        entries = recent_history(store, limit)
    except StorageError as exc:
        _fail(f"Cannot read history: {exc}")
    render_history(entries)
