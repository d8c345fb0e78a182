# broker_scheduling/services/viewings.py
"""
Booking store: creates and cancels property viewings.

Creating a viewing takes one unit of window capacity through
CapacityTracker inside the same transaction as the insert, so a
viewing exists if and only if its capacity was reserved.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import CapacityExceeded, ConflictError, InvalidRange, NotFound, ValidationError
from ..models import ACTIVE_VIEWING_STATUSES, PropertyViewings
from .scheduling.availability import broker_day_slots, other_property_viewings
from .scheduling.capacity import CapacityTracker
from .scheduling.directory import list_active_brokers, lock_broker_schedule
from .scheduling.intervals import from_storage, parse_time, to_storage, utc_now
from .scheduling.storage import storage_guard
from .scheduling.windows import AvailabilityWindowStore

logger = logging.getLogger(__name__)


def book_viewing(
    db: Session,
    availability_id: int,
    property_id: int,
    time: str,
    visitor_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PropertyViewings:
    """
    Book the slot starting at `time` ("HH:MM") in an availability window.

    Steps:
    1. Load window and check the broker is assigned to the property
    2. Lock the broker schedule, find the generated slot at `time`
    3. Refuse it if the broker has a viewing at another property then,
       or if the slot has no capacity left
    4. Reserve window capacity (atomic) and insert the viewing, one commit
    """
    parse_time(time)
    now = now or utc_now()

    with storage_guard(db, "booking viewing"):
        window = AvailabilityWindowStore(db).get(availability_id)
        broker = window.broker

        if not list_active_brokers(db, property_id, broker.id):
            raise NotFound("PropertyBrokerAssignment", f"{property_id}/{broker.id}")

        lock_broker_schedule(db, broker.id)
        db.refresh(window)

        slots, viewings = broker_day_slots(db, broker, window.date)
        slot = next(
            (s for s in slots if s.availability_id == window.id and s.time == time),
            None,
        )
        if slot is None:
            raise ValidationError(
                f"{time} is not a bookable slot of availability window {window.id}",
                field="time",
            )
        if slot.start < now:
            raise InvalidRange("Cannot book a slot in the past", field="time")

        busy = other_property_viewings(slot, property_id, viewings)
        if busy:
            raise ConflictError(
                f"Broker {broker.id} has another viewing at {time}",
                conflicts=[
                    {
                        "id": v.id,
                        "property_id": v.property_id,
                        "start_datetime": from_storage(v.start_datetime).isoformat(),
                        "end_datetime": from_storage(v.end_datetime).isoformat(),
                    }
                    for v in busy
                ],
            )
        if not slot.available:
            raise CapacityExceeded(window.id, slot.max_bookings, slot.current_bookings)

        CapacityTracker(db).reserve(window.id, commit=False)

        viewing = PropertyViewings(
            property_id=property_id,
            broker_id=broker.id,
            availability_id=window.id,
            start_datetime=to_storage(slot.start),
            end_datetime=to_storage(slot.end),
            duration_minutes=slot.duration_minutes,
            visitor_name=visitor_name,
            status="scheduled",
        )
        db.add(viewing)
        db.commit()
        db.refresh(viewing)

    logger.info(
        f"Viewing booked: id={viewing.id}, property_id={property_id}, "
        f"broker_id={broker.id}, window_id={window.id}, time={window.date.isoformat()} {time}"
    )
    return viewing


def cancel_viewing(db: Session, viewing_id: int) -> PropertyViewings:
    """Cancel a viewing and give its capacity back to the window."""
    with storage_guard(db, "cancelling viewing"):
        viewing = db.get(PropertyViewings, viewing_id)
        if not viewing:
            raise NotFound("Viewing", viewing_id)
        if viewing.status not in ACTIVE_VIEWING_STATUSES:
            raise ConflictError(f"Viewing {viewing_id} is already {viewing.status}")

        viewing.status = "cancelled"
        if viewing.availability_id is not None:
            CapacityTracker(db).release(viewing.availability_id, commit=False)
        db.commit()
        db.refresh(viewing)

    logger.info(f"Viewing cancelled: id={viewing_id}")
    return viewing
