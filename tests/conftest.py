"""
Pytest configuration for sqlpoll.

Provides fixtures for:
- Settings and connection config overrides for integration tests
- Database reachability checks (integration tests skip without a database)
- Clocks and sinks shared by the polling loop tests
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import psycopg
import pytest

from sqlpoll.config import Settings
from sqlpoll.domain.models import ConnectionConfig, Record
from sqlpoll.infrastructure.db_factory import build_dsn


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "postgres"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_connection_config(test_settings: Settings) -> ConnectionConfig:
    return ConnectionConfig(
        host=test_settings.db_host,
        port=test_settings.db_port,
        database=test_settings.db_name,
        user=test_settings.db_user,
        password=test_settings.db_password,
    )


@pytest.fixture(scope="session")
def db_connection_available(test_connection_config: ConnectionConfig) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(build_dsn(test_connection_config), connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


class SteppingClock:
    """Returns the given instants in order, then keeps returning the last one."""

    def __init__(self, instants: Iterable[datetime]) -> None:
        self._instants = list(instants)
        self.calls = 0

    def __call__(self) -> datetime:
        index = min(self.calls, len(self._instants) - 1)
        self.calls += 1
        return self._instants[index]


class CollectingSink:
    """Sink that keeps every batch and can request shutdown after N records."""

    def __init__(self, shutdown: Optional[asyncio.Event] = None, stop_after: Optional[int] = None) -> None:
        self.batches: List[List[Record]] = []
        self._shutdown = shutdown
        self._stop_after = stop_after

    @property
    def records(self) -> List[Record]:
        return [record for batch in self.batches for record in batch]

    async def send_batch(self, records: List[Record]) -> None:
        self.batches.append(list(records))
        if self._shutdown is not None and self._stop_after is not None:
            if len(self.records) >= self._stop_after:
                self._shutdown.set()


@pytest.fixture
def stepping_clock() -> Callable[..., SteppingClock]:
    def _make(*instants: datetime) -> SteppingClock:
        return SteppingClock(instants)

    return _make


@pytest.fixture
def collecting_sink() -> Callable[..., CollectingSink]:
    def _make(shutdown: Optional[asyncio.Event] = None, stop_after: Optional[int] = None) -> CollectingSink:
        return CollectingSink(shutdown=shutdown, stop_after=stop_after)

    return _make
