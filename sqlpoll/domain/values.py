"""
Generic value model and the normalizer that produces it.

Driver values (as returned by psycopg) are converted into a closed set of plain
Python types so downstream consumers never see driver-specific objects:

- Null       -> None
- Boolean    -> bool
- Integer    -> int, restricted to the signed 64-bit range
- Float      -> float, never NaN
- Bytes      -> bytes (binary payloads) or str (textual payloads)
- Timestamp  -> timezone-aware datetime in UTC
- Duration   -> Duration (time-of-day and interval values)
- Array      -> list of generic values
- Object     -> dict of str to generic values

Normalization is pure. Failures raise NormalizationError naming the column; the
row mapper decides what to do with them.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Union

from sqlpoll.errors import NormalizationError

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


@dataclass(frozen=True)
class Duration:
    """
    Signed duration split into calendar-free components.

    Used for both time-of-day columns (always positive, zero days) and interval
    columns. All components are non-negative; the sign lives in `negative`.
    """

    negative: bool
    days: int
    hours: int
    minutes: int
    seconds: int
    microseconds: int

    def to_timedelta(self) -> timedelta:
        magnitude = timedelta(
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
            microseconds=self.microseconds,
        )
        return -magnitude if self.negative else magnitude


GenericValue = Union[
    None,
    bool,
    int,
    float,
    bytes,
    str,
    datetime,
    Duration,
    List["GenericValue"],
    Dict[str, "GenericValue"],
]


def duration_from_timedelta(value: timedelta) -> Duration:
    negative = value < timedelta(0)
    magnitude = -value if negative else value
    hours, remainder = divmod(magnitude.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return Duration(
        negative=negative,
        days=magnitude.days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=magnitude.microseconds,
    )


def duration_from_time(value: time) -> Duration:
    return Duration(
        negative=False,
        days=0,
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


def timestamp_from_parts(
    column: str,
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    microsecond: int = 0,
) -> datetime:
    """
    Build a UTC timestamp from wall-clock components.

    The calendar date is validated first, then the time of day. The fields are
    taken as UTC; no timezone conversion is applied.

    Raises
    ------
    NormalizationError
        If the components do not form a valid date and time.
    """
    try:
        calendar_date = date(year, month, day)
        clock = time(hour, minute, second, microsecond)
    except (ValueError, OverflowError) as exc:
        raise NormalizationError(column, "invalid date") from exc
    return datetime.combine(calendar_date, clock, tzinfo=timezone.utc)


def _checked_integer(column: str, value: int) -> int:
    if value < I64_MIN or value > I64_MAX:
        raise NormalizationError(column, "out of range for a signed 64-bit integer")
    return value


def _checked_float(column: str, value: float) -> float:
    if math.isnan(value):
        raise NormalizationError(column, "float value is NaN")
    return value


def normalize_value(column: str, value: Any) -> GenericValue:
    """
    Convert one driver value into the generic value model.

    Parameters
    ----------
    column : str
        Column name, used in error messages.
    value : Any
        Value as produced by the database driver.

    Returns
    -------
    GenericValue
        The normalized value.

    Raises
    ------
    NormalizationError
        If the value is out of range, NaN, an invalid date, or of an
        unsupported type.
    """
    if value is None:
        return None
    # bool is a subclass of int and must be matched first
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return _checked_integer(column, value)
    if isinstance(value, float):
        return _checked_float(column, value)
    if isinstance(value, Decimal):
        # Exact text form; numeric columns surface as textual bytes.
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            try:
                value = value.astimezone(timezone.utc)
            except (ValueError, OverflowError) as exc:
                raise NormalizationError(column, "invalid date") from exc
        return timestamp_from_parts(
            column,
            value.year,
            value.month,
            value.day,
            value.hour,
            value.minute,
            value.second,
            value.microsecond,
        )
    if isinstance(value, date):
        return timestamp_from_parts(column, value.year, value.month, value.day)
    if isinstance(value, time):
        return duration_from_time(value)
    if isinstance(value, timedelta):
        return duration_from_timedelta(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(column, item) for item in value]
    if isinstance(value, dict):
        return {str(key): normalize_value(column, item) for key, item in value.items()}
    raise NormalizationError(column, f"unsupported type {type(value).__name__}")


__all__ = [
    "I64_MIN",
    "I64_MAX",
    "Duration",
    "GenericValue",
    "duration_from_time",
    "duration_from_timedelta",
    "normalize_value",
    "timestamp_from_parts",
]
