# broker_scheduling/services/scheduling/availability.py
"""
Available viewing slots for a property on a date.

    property → active assigned brokers (primary first)
      → per broker: available windows on the date
                    blocked periods overlapping the local day
                    active viewings overlapping the local day
      → generate_slots per window, capped by the window counter
      → a slot overlapping a viewing of another property is unavailable
      → per-broker slot lists

Recomputed from the database on every call; nothing is cached.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from sqlalchemy.orm import Session

from ...config import settings
from ...errors import InvalidRange
from ...models import Brokers, PropertyViewings
from .blocked_periods import BlockedPeriodManager, period_interval
from .config import SchedulingConfig, get_scheduling_config
from .directory import (
    broker_timezone,
    list_active_brokers,
    list_viewings_overlapping,
    viewing_interval,
)
from .generator import Slot, generate_slots, window_remaining
from .intervals import day_interval, overlaps, parse_date, resolve_timezone, utc_now
from .storage import storage_guard
from .windows import AvailabilityWindowStore

logger = logging.getLogger(__name__)

CONFLICT_OTHER_PROPERTY = "broker_busy_other_property"


def validate_query_date(
    target_date: Union[str, date],
    config: SchedulingConfig,
    now: datetime,
) -> date:
    """Date must be today or later and within the booking horizon."""
    day = parse_date(target_date)
    today = now.astimezone(resolve_timezone(settings.default_timezone)).date()
    if day < today:
        raise InvalidRange("Cannot book slots in the past", field="date")
    if day > today + timedelta(days=config.horizon_days):
        raise InvalidRange(
            f"Date cannot be more than {config.horizon_days} days ahead",
            field="date",
        )
    return day


def broker_day_slots(
    db: Session,
    broker: Brokers,
    target_date: date,
) -> tuple[list[Slot], list[PropertyViewings]]:
    """All slots of one broker on a date plus the viewings used to annotate them."""
    tz = broker_timezone(broker)
    day = day_interval(target_date, tz)

    windows = AvailabilityWindowStore(db).windows_between(
        broker.id, target_date, target_date, only_available=True
    )
    blocked = [
        period_interval(p)
        for p in BlockedPeriodManager(db).overlapping(broker.id, day)
    ]
    viewings = list_viewings_overlapping(db, [broker.id], day)
    booked = [viewing_interval(v) for v in viewings]

    slots: list[Slot] = []
    for window in windows:
        slots.extend(generate_slots(window, blocked, booked, tz, window_remaining(window)))
    return slots, viewings


def other_property_viewings(
    slot: Slot,
    property_id: int,
    viewings: list[PropertyViewings],
) -> list[PropertyViewings]:
    """Viewings elsewhere that keep the broker busy during the slot."""
    return [
        v for v in viewings
        if v.property_id != property_id and overlaps(slot.interval, viewing_interval(v))
    ]


def slot_to_dict(slot: Slot, property_id: int, viewings: list[PropertyViewings]) -> dict:
    other_property = other_property_viewings(slot, property_id, viewings)
    return {
        "time": slot.time,
        "start_datetime": slot.start.isoformat(),
        "end_datetime": slot.end.isoformat(),
        "available": slot.available and not other_property,
        "maxBookings": slot.max_bookings,
        "currentBookings": slot.current_bookings,
        "capacityRemaining": slot.capacity_remaining,
        "broker_id": slot.broker_id,
        "availability_id": slot.availability_id,
        "duration_minutes": slot.duration_minutes,
        "booking_type": slot.booking_type,
        "notes": slot.notes,
        "hasConflict": bool(other_property),
        "conflictReason": CONFLICT_OTHER_PROPERTY if other_property else None,
    }


def calculate_property_slots(
    db: Session,
    property_id: int,
    target_date: Union[str, date],
    broker_id: Optional[int] = None,
    config: SchedulingConfig | None = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Calculate available viewing slots for a property.

    Returns:
        Dict with property_id, date and per-broker slot lists
        (for AvailableSlotsResponse). Slots that already started are
        left out.
    """
    config = config or get_scheduling_config()
    now = now or utc_now()
    day = validate_query_date(target_date, config, now)

    with storage_guard(db, "calculating available slots"):
        assigned = list_active_brokers(db, property_id, broker_id)

        brokers = []
        for broker, is_primary in assigned:
            slots, viewings = broker_day_slots(db, broker, day)
            brokers.append({
                "broker_id": broker.id,
                "broker": {
                    "id": broker.id,
                    "full_name": broker.full_name,
                    "email": broker.email,
                    "phone": broker.phone,
                    "timezone": broker.timezone,
                },
                "is_primary": is_primary,
                "slots": [
                    slot_to_dict(slot, property_id, viewings)
                    for slot in slots
                    if slot.start >= now
                ],
            })

    logger.info(
        f"Slots calculated: property_id={property_id}, date={day.isoformat()}, "
        f"brokers={len(brokers)}, slots={sum(len(b['slots']) for b in brokers)}"
    )
    return {
        "property_id": property_id,
        "date": day.isoformat(),
        "slots": brokers,
    }
