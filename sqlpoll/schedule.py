"""
Cron schedule evaluation for the polling loop.

Expressions use the classic 5-field layout (minute, hour, day-of-month, month,
day-of-week) and are evaluated in a configurable IANA timezone, so that
"0 9 * * *" in Europe/Berlin fires at 09:00 local time across DST changes.

Usage:
    from sqlpoll.schedule import Schedule

    schedule = Schedule.parse(ScheduleSpec(cron="*/10 * * * *", timezone="UTC"))
    fire_at = schedule.next_fire_time(datetime.now(timezone.utc))
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from sqlpoll.domain.models import ScheduleSpec
from sqlpoll.errors import ConfigurationError, ScheduleComputationError
from sqlpoll.utils.logging import get_logger

log = get_logger(__name__)

CRON_FIELD_COUNT = 5


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA timezone name, falling back to UTC.

    An unknown name is logged and replaced by UTC instead of failing.
    """
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning(f"Unknown timezone '{name}', falling back to UTC", extra={"timezone": name})
        return timezone.utc


def validate_expression(expression: str) -> str:
    """
    Check that `expression` is a well-formed 5-field cron expression.

    Raises
    ------
    ConfigurationError
        If the field count is wrong or any field is malformed.
    """
    fields = expression.split()
    if len(fields) != CRON_FIELD_COUNT:
        raise ConfigurationError(
            f"Cron expression '{expression}' must have {CRON_FIELD_COUNT} fields, got {len(fields)}"
        )
    normalized = " ".join(fields)
    if not croniter.is_valid(normalized):
        raise ConfigurationError(f"Malformed cron expression '{expression}'")
    return normalized


class Schedule:
    """
    A parsed cron expression bound to a timezone.
    """

    def __init__(self, expression: str, tz: Optional[tzinfo] = None) -> None:
        self.expression = validate_expression(expression)
        self.timezone = tz or timezone.utc

    @classmethod
    def parse(cls, spec: ScheduleSpec) -> Optional["Schedule"]:
        """
        Build a Schedule from a ScheduleSpec, or None when no cron is configured.
        """
        if spec.cron is None:
            return None
        return cls(spec.cron, resolve_timezone(spec.timezone))

    def next_fire_time(self, now: datetime) -> datetime:
        """
        Return the earliest matching instant strictly after `now`.

        Naive `now` values are interpreted as UTC. The result is expressed in
        the schedule's timezone.
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local_now = now.astimezone(self.timezone)
        try:
            itr = croniter(self.expression, local_now)
            candidate = itr.get_next(datetime)
            while candidate <= now:
                candidate = itr.get_next(datetime)
        except ValueError as exc:
            raise ScheduleComputationError(
                f"No next fire time for '{self.expression}' after {now.isoformat()}"
            ) from exc
        return candidate.astimezone(self.timezone)

    def delay_until_next(
        self, now: datetime, after: Optional[datetime] = None
    ) -> Tuple[datetime, float]:
        """
        Return the next fire time and the seconds left until it.

        When `after` is given (the previous fire time), the result is strictly
        later than it even if `now` still reads before it.
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        reference = now if after is None or after <= now else after
        fire_at = self.next_fire_time(reference)
        return fire_at, max((fire_at - now).total_seconds(), 0.0)

    def upcoming(self, now: datetime, count: int) -> List[datetime]:
        """Return the next `count` fire times after `now`."""
        times: List[datetime] = []
        reference = now
        for _ in range(count):
            reference = self.next_fire_time(reference)
            times.append(reference)
        return times

    def __repr__(self) -> str:
        return f"Schedule({self.expression!r}, tz={self.timezone})"


__all__ = [
    "CRON_FIELD_COUNT",
    "Schedule",
    "resolve_timezone",
    "validate_expression",
]
