# broker_scheduling/services/scheduling/intervals.py
"""
Half-open time intervals and datetime parsing.

All overlap decisions in the engine go through `overlaps()`:
blocked-period conflicts, slot filtering and booking counts.

Datetimes are always timezone-aware here. Storage keeps naive UTC
(see `to_storage` / `from_storage`).
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...errors import InvalidRange, InvalidTimeFormat

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


@dataclass(frozen=True)
class TimeInterval:
    """[start, end): start inclusive, end exclusive."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidTimeFormat("Interval bounds must carry a timezone offset")
        if self.end <= self.start:
            raise InvalidRange("Interval end must be after its start")

    @classmethod
    def from_storage(cls, start: datetime, end: datetime) -> "TimeInterval":
        return cls(from_storage(start), from_storage(end))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)

    def contains(self, inner: "TimeInterval") -> bool:
        return contains(self, inner)

    def astimezone(self, tz: ZoneInfo) -> "TimeInterval":
        return TimeInterval(self.start.astimezone(tz), self.end.astimezone(tz))


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Adjacent intervals ([9,10) and [10,11)) do not overlap."""
    return a.start < b.end and b.start < a.end


def contains(outer: TimeInterval, inner: TimeInterval) -> bool:
    return inner.start >= outer.start and inner.end <= outer.end


# ── Parsing ──────────────────────────────────────────────────────────────


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimeFormat(f"Unknown timezone: {name!r}", field="timezone") from None


def parse_datetime(
    value: Union[str, datetime],
    tz: Optional[ZoneInfo] = None,
    field: Optional[str] = None,
) -> datetime:
    """
    Parse an ISO-8601 datetime that carries an explicit offset.

    Values without an offset are ambiguous and rejected. When `tz` is
    given the result is normalized into it.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise InvalidTimeFormat(
                f"Invalid datetime {value!r}. Use ISO 8601 with offset (YYYY-MM-DDTHH:MM:SS+HH:MM)",
                field=field,
            ) from None
    else:
        raise InvalidTimeFormat(f"Invalid datetime {value!r}", field=field)

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise InvalidTimeFormat(
            f"Datetime {value!r} has no timezone offset",
            field=field,
        )
    return parsed.astimezone(tz) if tz is not None else parsed


def parse_date(value: Union[str, date], field: str = "date") -> date:
    if isinstance(value, datetime):
        raise InvalidTimeFormat(f"Expected a date, got datetime {value!r}", field=field)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidTimeFormat(f"Invalid date {value!r}. Use YYYY-MM-DD", field=field)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidTimeFormat(f"Invalid date {value!r}. Use YYYY-MM-DD", field=field) from None


def parse_time(value: str, field: str = "time") -> time:
    match = _TIME_RE.match(value) if isinstance(value, str) else None
    if not match:
        raise InvalidTimeFormat(f"Invalid time {value!r}. Use HH:MM", field=field)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeFormat(f"Invalid time {value!r}. Use HH:MM", field=field)
    return time(hour, minute)


def combine_local(day: date, hhmm: str, tz: ZoneInfo, field: str = "time") -> datetime:
    """Date + local "HH:MM" in the broker's timezone."""
    return datetime.combine(day, parse_time(hhmm, field=field), tzinfo=tz)


def day_interval(day: date, tz: ZoneInfo) -> TimeInterval:
    """The whole local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return TimeInterval(start, end)


def format_local_time(dt: datetime, tz: ZoneInfo) -> str:
    return dt.astimezone(tz).strftime("%H:%M")


# ── Storage ──────────────────────────────────────────────────────────────


def to_storage(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
