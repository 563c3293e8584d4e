from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from typing import Optional

import typer

from sqlpoll.config import Settings, get_settings
from sqlpoll.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    QueryError,
    ScheduleComputationError,
)
from sqlpoll.orchestrator import DatabaseSource, SourceStats, utc_now
from sqlpoll.schedule import Schedule, resolve_timezone
from sqlpoll.sinks.abstract import RecordSink
from sqlpoll.sinks.console import ConsoleSink
from sqlpoll.utils.logging import configure_logging

app = typer.Typer(help="Poll a database on a cron schedule and emit rows as records.")


def _build_source(settings: Settings, schedule: Optional[str] = None, once: bool = False) -> DatabaseSource:
    try:
        return DatabaseSource(settings.source_config(schedule=schedule, once=once))
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _parse_schedule(expression: str, timezone_name: Optional[str]) -> Schedule:
    try:
        return Schedule(expression, resolve_timezone(timezone_name))
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


async def _serve(source: DatabaseSource, sink: RecordSink) -> SourceStats:
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows; Ctrl+C then surfaces as KeyboardInterrupt.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown.set)
    return await source.run(sink, shutdown)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    password = "***" if settings.db_password else "-"
    typer.echo(
        f"DB={settings.db_user or '-'}:{password}@{settings.db_host}:{settings.db_port}/"
        f"{settings.db_name or '-'} | source={settings.source_name} "
        f"schedule={settings.schedule or 'once'} tz={settings.schedule_timezone or 'UTC'} "
        f"policy={settings.failure_policy} retries={settings.retry_attempts}"
    )
    if settings.schedule:
        schedule = _parse_schedule(settings.schedule, settings.schedule_timezone)
        typer.echo(f"Next fire time: {schedule.next_fire_time(utc_now()).isoformat()}")


@app.command("next")
def next_fire_times(
    count: int = typer.Option(5, "--count", "-n", min=1, help="How many fire times to show."),
    schedule: Optional[str] = typer.Option(
        None, "--schedule", "-s", help="Cron expression (default from settings)."
    ),
) -> None:
    """
    Print the upcoming fire times of the schedule.
    """
    settings = get_settings()
    expression = schedule or settings.schedule
    if not expression:
        typer.echo("No schedule configured; the statement runs once.")
        return
    parsed = _parse_schedule(expression, settings.schedule_timezone)
    for fire_at in parsed.upcoming(utc_now(), count):
        typer.echo(fire_at.isoformat())


@app.command()
def run(
    once: bool = typer.Option(False, "--once", help="Run the statement once and exit."),
    schedule: Optional[str] = typer.Option(
        None, "--schedule", "-s", help="Cron expression overriding SOURCE_SCHEDULE."
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print records instead of JSON lines."),
) -> None:
    """
    Run the source, writing every record to stdout.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    source = _build_source(settings, schedule=schedule, once=once)
    sink = ConsoleSink(pretty=pretty)

    try:
        stats = asyncio.run(_serve(source, sink))
    except (DatabaseConnectionError, QueryError, ScheduleComputationError) as exc:
        typer.echo(f"Source '{source.name}' stopped: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"Stopped after ticks={stats.ticks} records={stats.records} rows={stats.rows} "
        f"degraded_values={stats.normalization_failures}",
        err=True,
    )


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
