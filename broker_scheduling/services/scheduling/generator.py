# broker_scheduling/services/scheduling/generator.py
"""
Slot generation: one availability window → ordered discrete slots.

    cursor = window.start
    while cursor + duration <= window.end:
        candidate = [cursor, cursor + duration)
        drop candidate if it overlaps a blocked period
        else emit with capacity = max_bookings − overlapping bookings,
             capped by what is left of the window counter
        cursor += duration + break

Pure and deterministic: no database access, no clock. A trailing
remainder shorter than `slot_duration_minutes` is dropped.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from ...errors import ValidationError
from .intervals import TimeInterval, combine_local, format_local_time, overlaps


@dataclass(frozen=True)
class Slot:
    broker_id: int
    availability_id: Optional[int]
    start: datetime
    end: datetime
    time: str  # "HH:MM", broker local
    duration_minutes: int
    max_bookings: int
    capacity_remaining: int
    booking_type: str
    notes: Optional[str] = None
    booked: int = 0  # overlapping active bookings

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start, self.end)

    @property
    def available(self) -> bool:
        return self.capacity_remaining > 0

    @property
    def current_bookings(self) -> int:
        return self.max_bookings - self.capacity_remaining


def window_interval(window, tz: ZoneInfo) -> TimeInterval:
    """Absolute interval covered by a window on its date."""
    start = combine_local(window.date, window.start_time, tz, field="start_time")
    end = combine_local(window.date, window.end_time, tz, field="end_time")
    return TimeInterval(start, end)


def window_remaining(window) -> int:
    """Units left on the window counter that reserve() enforces."""
    return max(0, window.max_bookings - (window.current_bookings or 0))


def count_overlapping(candidate: TimeInterval, bookings: Iterable[TimeInterval]) -> int:
    return sum(1 for booking in bookings if overlaps(candidate, booking))


def generate_slots(
    window,
    blocked_periods: Sequence[TimeInterval],
    existing_bookings: Sequence[TimeInterval],
    tz: ZoneInfo,
    remaining: Optional[int] = None,
) -> list[Slot]:
    """
    Generate bookable slots for one window.

    Args:
        window: object with date, start_time, end_time ("HH:MM"),
                slot_duration_minutes, break_between_slots, max_bookings,
                booking_type, notes, is_available, id, broker_id
        blocked_periods: the broker's blocked intervals
        existing_bookings: the broker's active booking intervals
        tz: broker timezone the window's local times belong to
        remaining: window-level units left (see window_remaining); None
                   means only overlapping bookings limit capacity

    Returns:
        Slots in chronological order. Unavailable windows yield [].
    """
    if not window.is_available:
        return []

    duration_min = window.slot_duration_minutes
    break_min = window.break_between_slots or 0
    if duration_min is None or duration_min <= 0:
        raise ValidationError(
            f"slot_duration_minutes must be > 0, got {duration_min}",
            field="slot_duration_minutes",
        )
    if break_min < 0:
        raise ValidationError(
            f"break_between_slots must be >= 0, got {break_min}",
            field="break_between_slots",
        )

    bounds = window_interval(window, tz)
    duration = timedelta(minutes=duration_min)
    step = duration + timedelta(minutes=break_min)

    slots: list[Slot] = []
    cursor = bounds.start
    while cursor + duration <= bounds.end:
        candidate = TimeInterval(cursor, cursor + duration)

        if not any(overlaps(candidate, blocked) for blocked in blocked_periods):
            booked = count_overlapping(candidate, existing_bookings)
            capacity = max(0, window.max_bookings - booked)
            if remaining is not None:
                capacity = min(capacity, remaining)
            slots.append(Slot(
                broker_id=window.broker_id,
                availability_id=window.id,
                start=candidate.start,
                end=candidate.end,
                time=format_local_time(candidate.start, tz),
                duration_minutes=duration_min,
                max_bookings=window.max_bookings,
                capacity_remaining=capacity,
                booking_type=window.booking_type,
                notes=window.notes,
                booked=booked,
            ))

        cursor += step

    return slots
