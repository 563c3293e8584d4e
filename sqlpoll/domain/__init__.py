"""
Domain package for the database polling source.

Exports the generic value model, configuration models, records and the row
mapper. Keep this package free of I/O.
"""

from sqlpoll.domain.models import (
    ConnectionConfig,
    QueryResult,
    Record,
    ScheduleSpec,
    SourceConfig,
    load_source_config,
    to_jsonable,
)
from sqlpoll.domain.rows import RowMapper
from sqlpoll.domain.values import Duration, GenericValue, normalize_value, timestamp_from_parts

__all__ = [
    "ConnectionConfig",
    "Duration",
    "GenericValue",
    "QueryResult",
    "Record",
    "RowMapper",
    "ScheduleSpec",
    "SourceConfig",
    "load_source_config",
    "normalize_value",
    "timestamp_from_parts",
    "to_jsonable",
]
