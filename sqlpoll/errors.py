"""
Exception taxonomy for the database polling source.

Configuration problems surface before any connection is attempted. Connection
and query failures terminate a running source unless it is configured to
tolerate them. Normalization failures are recovered per column by the row
mapper and never escape a tick.
"""

from __future__ import annotations


class SqlPollError(Exception):
    """Base class for every error raised by sqlpoll."""


class ConfigurationError(SqlPollError):
    """Malformed cron expression, empty statement or invalid settings."""


class DatabaseConnectionError(SqlPollError):
    """Unreachable host, authentication failure or pool acquisition timeout."""


class QueryError(SqlPollError):
    """The server rejected the statement or execution failed."""


class NormalizationError(SqlPollError):
    """A column value could not be represented in the generic value model."""

    def __init__(self, column: str, reason: str) -> None:
        self.column = column
        self.reason = reason
        super().__init__(f"{reason}: {column}")


class ScheduleComputationError(SqlPollError):
    """No next fire time could be computed for the schedule."""


__all__ = [
    "SqlPollError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "QueryError",
    "NormalizationError",
    "ScheduleComputationError",
]
