"""
Infrastructure package for the database polling source.

Centralizes database connectivity concerns (pool lifecycle, acquisition,
statement execution). Keep this layer focused on I/O and resource management,
decoupled from scheduling and record assembly.
"""

from sqlpoll.infrastructure.db_factory import (
    ACQUIRE_TIMEOUT_SECONDS,
    ConnectionManager,
    build_dsn,
)

__all__ = [
    "ACQUIRE_TIMEOUT_SECONDS",
    "ConnectionManager",
    "build_dsn",
]
