"""
Domain models for the database polling source.

Configuration objects are immutable for the lifetime of a source. A `Record` is
the unit handed to the pipeline sink: one per successful tick, combining the
capture timestamp with the mapped rows.
"""
from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from sqlpoll.domain.values import Duration, GenericValue
from sqlpoll.errors import ConfigurationError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432

TIMESTAMP_KEY = "timestamp"
MESSAGE_KEY = "message"

FailurePolicy = Literal["strict", "tolerant"]


class ConnectionConfig(BaseModel):
    """
    Connection parameters for the polled database.
    """

    host: str = Field(DEFAULT_HOST, description="Hostname or IP address.")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="TCP port.")
    database: Optional[str] = Field(None, description="Database name.")
    user: Optional[str] = Field(None, description="User to connect as.")
    password: Optional[str] = Field(None, repr=False, description="Password, if required.")

    model_config = {"frozen": True}


class ScheduleSpec(BaseModel):
    """
    Cron schedule and the timezone it is evaluated in.

    A missing `cron` means the statement runs exactly once.
    """

    cron: Optional[str] = Field(None, description="5-field cron expression.")
    timezone: Optional[str] = Field(None, description="IANA timezone name, UTC if absent.")

    model_config = {"frozen": True}


class SourceConfig(BaseModel):
    """
    Everything one polling source needs.
    """

    name: str = Field("database", description="Identifier used in logs.")
    statement: str = Field(..., description="SQL statement executed on every tick.")
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    schedule: ScheduleSpec = Field(default_factory=ScheduleSpec)
    failure_policy: FailurePolicy = Field(
        "strict", description="strict stops the source on failure, tolerant waits for the next tick."
    )
    retry_attempts: int = Field(0, ge=0, description="Extra attempts on connection errors.")

    model_config = {"frozen": True}

    @field_validator("statement")
    @classmethod
    def _statement_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("statement must not be empty")
        return value


def load_source_config(data: Mapping[str, Any]) -> SourceConfig:
    """
    Validate raw settings into a SourceConfig.

    Raises
    ------
    ConfigurationError
        If any field is missing or invalid.
    """
    try:
        return SourceConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


@dataclass(frozen=True)
class QueryResult:
    """
    Fully materialized result set of one statement execution.
    """

    columns: List[str] = field(default_factory=list)
    rows: List[Sequence[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


class Record(BaseModel):
    """
    One emitted unit: capture time plus the rows produced by a tick.
    """

    timestamp: datetime = Field(..., description="UTC instant the rows were captured.")
    message: List[Dict[str, Any]] = Field(default_factory=list, description="Mapped rows.")

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def capture(cls, rows: List[Dict[str, GenericValue]], captured_at: datetime) -> "Record":
        return cls(timestamp=captured_at, message=rows)

    def as_event(self) -> Dict[str, GenericValue]:
        """Return the record as a generic Object. The rows are copies."""
        return {TIMESTAMP_KEY: self.timestamp, MESSAGE_KEY: copy.deepcopy(self.message)}


def to_jsonable(value: Any) -> Any:
    """
    Convert a generic value into something `json.dumps` accepts.

    Bytes decode as UTF-8 where possible and fall back to hex. Timestamps use
    RFC 3339 with a `Z` suffix.
    """
    if isinstance(value, Record):
        return to_jsonable(value.as_event())
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value.hex()
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, Duration):
        return dataclasses.asdict(value)
    return value


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "MESSAGE_KEY",
    "TIMESTAMP_KEY",
    "ConnectionConfig",
    "FailurePolicy",
    "QueryResult",
    "Record",
    "ScheduleSpec",
    "SourceConfig",
    "load_source_config",
    "to_jsonable",
]
