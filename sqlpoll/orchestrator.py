"""
Polling loop for database sources.

A DatabaseSource waits until its next cron fire time (or until shutdown is
requested), runs its statement on its single pooled connection, maps every row
into a generic object and hands exactly one Record per tick to the sink.

Usage (example):
    from sqlpoll.orchestrator import DatabaseSource

    source = DatabaseSource(config)
    shutdown = asyncio.Event()
    await source.run(sink, shutdown)

Without a cron expression the statement runs once and the source stops.
Late ticks are never replayed: each wait is computed from the current time,
and never from before the previous fire time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence

from sqlpoll.domain.models import Record, SourceConfig
from sqlpoll.domain.rows import RowMapper
from sqlpoll.errors import DatabaseConnectionError, QueryError
from sqlpoll.infrastructure.db_factory import ConnectionManager
from sqlpoll.schedule import Schedule
from sqlpoll.sinks.abstract import RecordSink
from sqlpoll.utils.logging import get_logger

log = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SourceState(str, Enum):
    WAITING = "waiting"
    QUERYING = "querying"
    EMITTING = "emitting"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class SourceStats:
    """Counters for one source run."""

    ticks: int = 0
    records: int = 0
    rows: int = 0
    normalization_failures: int = 0
    failures: int = 0


class DatabaseSource:
    """
    Scheduled query source bound to one database.

    Parameters
    ----------
    config : SourceConfig
        Statement, connection, schedule and failure policy.
    manager : ConnectionManager | None
        Connection manager to use. Built from `config.connection` if None.
    clock : Callable[[], datetime]
        Returns the current UTC time. Used for scheduling and capture stamps.

    Raises
    ------
    ConfigurationError
        If the cron expression is malformed. Raised here, before any
        connection is attempted.
    """

    def __init__(
        self,
        config: SourceConfig,
        manager: Optional[ConnectionManager] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self.schedule = Schedule.parse(config.schedule)
        self.manager = manager or ConnectionManager(
            config.connection,
            retry_attempts=config.retry_attempts,
            source=config.name,
        )
        self.mapper = RowMapper(source=config.name)
        self.clock = clock
        self.state = SourceState.WAITING
        self.stats = SourceStats()
        # Each fire time is used at most once, even if the clock lags the timer.
        self.last_fire_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.config.name

    @staticmethod
    def can_acknowledge() -> bool:
        """Database sources cannot acknowledge delivered records."""
        return False

    async def run(self, sink: RecordSink, shutdown: Optional[asyncio.Event] = None) -> SourceStats:
        """
        Drive the source until shutdown, or for one tick when unscheduled.

        Connection and query errors propagate (after the pool is closed) unless
        the source's failure policy is "tolerant".
        """
        shutdown = shutdown or asyncio.Event()
        log.info(
            f"[SOURCE START] {self.name}",
            extra={
                "source": self.name,
                "schedule": self.schedule.expression if self.schedule else None,
                "timezone": str(self.schedule.timezone) if self.schedule else None,
            },
        )
        await self.manager.open()
        try:
            if self.schedule is None:
                if not shutdown.is_set():
                    await self._tick(sink)
            else:
                while await self._wait_for_next_fire(self.schedule, shutdown):
                    await self._tick(sink)
        finally:
            self.state = SourceState.SHUTTING_DOWN
            await self.manager.close()
            log.info(
                f"[SOURCE STOP] {self.name}",
                extra={
                    "source": self.name,
                    "ticks": self.stats.ticks,
                    "records": self.stats.records,
                    "failures": self.stats.failures,
                },
            )
        return self.stats

    async def _wait_for_next_fire(self, schedule: Schedule, shutdown: asyncio.Event) -> bool:
        """Sleep until the next fire time. Returns False if shutdown won the race."""
        self.state = SourceState.WAITING
        if shutdown.is_set():
            return False
        fire_at, delay = schedule.delay_until_next(self.clock(), after=self.last_fire_at)
        log.debug(
            f"Sleeping for {delay:.0f} seconds",
            extra={"source": self.name, "fire_at": fire_at.isoformat()},
        )
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=delay)
        except asyncio.TimeoutError:
            self.last_fire_at = fire_at
            return True
        log.debug("Shutting down database source", extra={"source": self.name})
        return False

    async def _tick(self, sink: RecordSink) -> None:
        self.state = SourceState.QUERYING
        self.stats.ticks += 1
        log.info(f"[TICK START] {self.name}", extra={"source": self.name, "tick": self.stats.ticks})
        try:
            result = await self.manager.execute(self.config.statement)
        except (DatabaseConnectionError, QueryError) as exc:
            self.stats.failures += 1
            if self.config.failure_policy == "strict":
                log.exception(f"[TICK FAILED] {self.name}", extra={"source": self.name})
                raise
            log.warning(
                f"[TICK SKIPPED] {self.name}: {exc}",
                extra={"source": self.name, "error_type": type(exc).__name__},
            )
            return

        rows = self.mapper.map_rows(result)
        self.stats.normalization_failures = self.mapper.failures
        record = Record.capture(rows, self.clock())

        self.state = SourceState.EMITTING
        await sink.send_batch([record])
        self.stats.records += 1
        self.stats.rows += len(rows)
        log.info(
            f"[TICK SUCCESS] {self.name}",
            extra={"source": self.name, "tick": self.stats.ticks, "rows": len(rows)},
        )


async def run_sources(
    sources: Sequence[DatabaseSource],
    sink: RecordSink,
    shutdown: asyncio.Event,
) -> List[Optional[BaseException]]:
    """
    Run independent sources concurrently until each one stops.

    A source that fails does not affect the others. Returns, per source and in
    the same order, None for a clean stop or the exception that ended it.
    """
    results = await asyncio.gather(
        *(source.run(sink, shutdown) for source in sources),
        return_exceptions=True,
    )
    outcomes: List[Optional[BaseException]] = []
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            log.error(
                f"[SOURCE FAILED] {source.name}: {result}",
                extra={"source": source.name, "error_type": type(result).__name__},
            )
            outcomes.append(result)
        else:
            outcomes.append(None)
    return outcomes


__all__ = [
    "DatabaseSource",
    "SourceState",
    "SourceStats",
    "run_sources",
    "utc_now",
]
