"""
Database connection management for the polling source.

Each source owns one ConnectionManager, which owns one psycopg async pool with
exactly one connection. The single slot serializes every query issued by the
source, so ticks can never overlap against the same database.

Connection failures are fatal by default. An optional bounded retry (tenacity,
exponential backoff) can be enabled per source for transient connection
errors; query errors are never retried.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg
from psycopg import AsyncConnection
from psycopg.conninfo import make_conninfo
from psycopg_pool import AsyncConnectionPool, PoolTimeout
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sqlpoll.domain.models import ConnectionConfig, QueryResult
from sqlpoll.errors import DatabaseConnectionError, QueryError
from sqlpoll.utils.logging import get_logger

log = get_logger(__name__)

ACQUIRE_TIMEOUT_SECONDS = 3.0
POOL_SIZE = 1


def build_dsn(config: ConnectionConfig) -> str:
    """
    Compose a libpq connection string from the connection config.

    Optional fields that are not set are left out entirely.
    """
    params = {
        "host": config.host,
        "port": config.port,
        "dbname": config.database,
        "user": config.user,
        "password": config.password,
    }
    return make_conninfo(**{key: value for key, value in params.items() if value is not None})


class ConnectionManager:
    """
    Owns the single-connection pool of one source.

    Example
    -------
        async with ConnectionManager(config) as manager:
            result = await manager.execute("SELECT 1")
    """

    def __init__(
        self,
        config: ConnectionConfig,
        retry_attempts: int = 0,
        source: Optional[str] = None,
    ) -> None:
        self.config = config
        self.retry_attempts = retry_attempts
        self.source = source
        self._pool: Optional[AsyncConnectionPool] = None
        self._retry_wait = wait_exponential(multiplier=1, min=1, max=10)

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def _create_pool(self) -> AsyncConnectionPool:
        return AsyncConnectionPool(
            conninfo=build_dsn(self.config),
            min_size=POOL_SIZE,
            max_size=POOL_SIZE,
            open=False,
            name=self.source,
        )

    async def open(self) -> None:
        """Create and open the pool (idempotent). Connecting happens in the background."""
        if self._pool is None:
            pool = self._create_pool()
            await pool.open()
            self._pool = pool
            log.debug(
                "Connection pool opened",
                extra={"source": self.source, "host": self.config.host, "port": self.config.port},
            )

    async def close(self) -> None:
        """Close the pool and release its connection."""
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        try:
            await pool.close()
        except Exception:  # noqa: BLE001 - closing must not mask the loop outcome
            log.warning("Failed to close connection pool", exc_info=True, extra={"source": self.source})
        else:
            log.debug("Connection pool closed", extra={"source": self.source})

    async def __aenter__(self) -> "ConnectionManager":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def acquire(
        self, timeout: float = ACQUIRE_TIMEOUT_SECONDS
    ) -> AsyncIterator[AsyncConnection]:
        """
        Borrow the pool's connection, waiting at most `timeout` seconds.

        Raises
        ------
        DatabaseConnectionError
            If the pool is not open, the wait times out, or connecting fails.
        """
        if self._pool is None:
            raise DatabaseConnectionError("Connection pool is not open")
        try:
            async with self._pool.connection(timeout=timeout) as conn:
                yield conn
        except PoolTimeout as exc:
            raise DatabaseConnectionError(
                f"Timed out after {timeout:g}s waiting for a connection to "
                f"{self.config.host}:{self.config.port}"
            ) from exc
        except psycopg.OperationalError as exc:
            raise DatabaseConnectionError(
                f"Connection to {self.config.host}:{self.config.port} failed: {exc}"
            ) from exc

    async def _execute_once(self, statement: str) -> QueryResult:
        async with self.acquire() as conn:
            try:
                async with conn.cursor() as cur:
                    # prepare=False: the statement is parsed anew on every tick
                    await cur.execute(statement, prepare=False)
                    if cur.description is None:
                        return QueryResult()
                    columns = [column.name for column in cur.description]
                    rows = await cur.fetchall()
            except psycopg.Error as exc:
                raise QueryError(f"Statement failed: {exc}") from exc
        return QueryResult(columns=columns, rows=list(rows))

    async def execute(self, statement: str) -> QueryResult:
        """
        Run the unparameterized statement and materialize every row.

        Parameters
        ----------
        statement : str
            SQL text, executed without parameters.

        Returns
        -------
        QueryResult
            Column names and all rows.

        Raises
        ------
        DatabaseConnectionError
            If no connection could be obtained (after retries, when enabled).
        QueryError
            If the server rejected the statement or execution failed.
        """
        if self.retry_attempts <= 0:
            return await self._execute_once(statement)

        result = QueryResult()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts + 1),
            wait=self._retry_wait,
            retry=retry_if_exception_type(DatabaseConnectionError),
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                result = await self._execute_once(statement)
        return result


__all__ = [
    "ACQUIRE_TIMEOUT_SECONDS",
    "POOL_SIZE",
    "ConnectionManager",
    "build_dsn",
]
