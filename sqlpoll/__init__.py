"""
sqlpoll - Scheduled database polling source for event pipelines.

This package runs a fixed SQL statement against a PostgreSQL database on a
cron schedule and turns every result set into one generic, typed record:

- Cron schedules evaluated in any IANA timezone
- A single-connection pool with a bounded acquire timeout
- Normalization of driver values into a closed generic value model
- Cooperative shutdown while waiting for the next tick

Records are handed to any object implementing the `RecordSink` protocol.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from sqlpoll.config import Settings, get_settings
from sqlpoll.domain.models import (
    ConnectionConfig,
    QueryResult,
    Record,
    ScheduleSpec,
    SourceConfig,
)
from sqlpoll.domain.rows import RowMapper
from sqlpoll.domain.values import Duration, GenericValue, normalize_value
from sqlpoll.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    NormalizationError,
    QueryError,
    ScheduleComputationError,
    SqlPollError,
)
from sqlpoll.infrastructure.db_factory import ConnectionManager
from sqlpoll.orchestrator import DatabaseSource, SourceState, SourceStats, run_sources
from sqlpoll.schedule import Schedule
from sqlpoll.sinks import AbstractRecordSink, ConsoleSink, RecordSink
from sqlpoll.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    "ConnectionConfig",
    "ScheduleSpec",
    "SourceConfig",
    # Values and records
    "Duration",
    "GenericValue",
    "normalize_value",
    "QueryResult",
    "Record",
    "RowMapper",
    # Scheduling and polling
    "Schedule",
    "ConnectionManager",
    "DatabaseSource",
    "SourceState",
    "SourceStats",
    "run_sources",
    # Sinks
    "RecordSink",
    "AbstractRecordSink",
    "ConsoleSink",
    # Errors
    "SqlPollError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "QueryError",
    "NormalizationError",
    "ScheduleComputationError",
    # Logging
    "configure_logging",
    "get_logger",
]
