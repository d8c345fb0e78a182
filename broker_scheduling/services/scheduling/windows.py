# broker_scheduling/services/scheduling/windows.py
"""
Availability windows: per-broker, per-date working blocks.

A date's windows are replaced as a whole ("replace schedule for this
date"). The batch is validated before anything is written; the first
invalid window rejects all of them.

Windows holding bookings are never deleted, only marked unavailable.
`current_bookings` is owned by CapacityTracker and never written here.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Sequence, Union

from sqlalchemy.orm import Session

from ...errors import ConflictError, InvalidRange, NotFound, ValidationError
from ...models import BOOKING_TYPES, BrokerAvailability
from .config import SchedulingConfig, get_scheduling_config, time_str_to_minutes
from .directory import broker_timezone, get_broker, lock_broker_schedule
from .intervals import parse_date, parse_time, utc_now
from .storage import storage_guard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowInput:
    start_time: str
    end_time: str
    slot_duration_minutes: int = 60
    break_between_slots: int = 15
    max_bookings: int = 1
    booking_type: str = "property_viewing"
    notes: Optional[str] = None


def validate_window(window: WindowInput, index: int) -> None:
    """Raise on the first invalid field of one window."""
    parse_time(window.start_time, field="start_time")
    parse_time(window.end_time, field="end_time")

    if time_str_to_minutes(window.start_time) >= time_str_to_minutes(window.end_time):
        raise InvalidRange(
            f"End time must be after start time ({window.start_time}–{window.end_time})",
            field="end_time",
            index=index,
        )
    if window.slot_duration_minutes is None or window.slot_duration_minutes <= 0:
        raise ValidationError(
            f"slot_duration_minutes must be > 0, got {window.slot_duration_minutes}",
            field="slot_duration_minutes",
            index=index,
        )
    if window.break_between_slots is None or window.break_between_slots < 0:
        raise ValidationError(
            f"break_between_slots must be >= 0, got {window.break_between_slots}",
            field="break_between_slots",
            index=index,
        )
    if window.max_bookings is None or window.max_bookings < 1:
        raise ValidationError(
            f"max_bookings must be >= 1, got {window.max_bookings}",
            field="max_bookings",
            index=index,
        )
    if window.booking_type not in BOOKING_TYPES:
        raise ValidationError(
            f"booking_type must be one of {', '.join(BOOKING_TYPES)}",
            field="booking_type",
            index=index,
        )


def validate_batch(windows: Sequence[WindowInput]) -> None:
    """Validate each window, then reject windows overlapping each other."""
    for index, window in enumerate(windows):
        try:
            validate_window(window, index)
        except ValidationError as e:
            # parse_time errors don't know which window they came from
            if e.index is None:
                e.index = index
            raise

    ordered = sorted(
        enumerate(windows),
        key=lambda item: time_str_to_minutes(item[1].start_time),
    )
    for (_, prev), (index, current) in zip(ordered, ordered[1:]):
        if time_str_to_minutes(current.start_time) < time_str_to_minutes(prev.end_time):
            raise ValidationError(
                f"Window {current.start_time}–{current.end_time} overlaps "
                f"{prev.start_time}–{prev.end_time}",
                field="start_time",
                index=index,
            )


class AvailabilityWindowStore:
    """Persistence of availability windows."""

    def __init__(self, db: Session, config: SchedulingConfig | None = None):
        self.db = db
        self.config = config or get_scheduling_config()

    # ── Write ────────────────────────────────────────────────────────────

    def upsert_for_date(
        self,
        broker_id: int,
        day: Union[str, date],
        windows: Sequence[WindowInput],
        now: Optional[datetime] = None,
    ) -> list[BrokerAvailability]:
        """
        Replace all windows of a broker on a date.

        Returns:
            The new windows, ascending by start_time.
        """
        with storage_guard(self.db, "replacing availability windows"):
            broker = get_broker(self.db, broker_id)
            tz = broker_timezone(broker)
            target_date = parse_date(day)

            today = (now or utc_now()).astimezone(tz).date()
            if target_date < today:
                raise InvalidRange("Cannot create availability in the past", field="date")

            validate_batch(windows)

            lock_broker_schedule(self.db, broker.id)

            existing = (
                self.db.query(BrokerAvailability)
                .filter(
                    BrokerAvailability.broker_id == broker.id,
                    BrokerAvailability.date == target_date,
                )
                .all()
            )
            retired = 0
            for old in existing:
                if old.current_bookings > 0:
                    old.is_available = False
                    retired += 1
                else:
                    self.db.delete(old)

            created = [
                BrokerAvailability(
                    broker_id=broker.id,
                    date=target_date,
                    start_time=w.start_time,
                    end_time=w.end_time,
                    slot_duration_minutes=w.slot_duration_minutes,
                    break_between_slots=w.break_between_slots,
                    max_bookings=w.max_bookings,
                    current_bookings=0,
                    booking_type=w.booking_type,
                    notes=w.notes,
                    is_available=True,
                )
                for w in windows
            ]
            self.db.add_all(created)
            self.db.commit()
            for obj in created:
                self.db.refresh(obj)

        logger.info(
            f"Availability replaced: broker_id={broker.id}, date={target_date.isoformat()}, "
            f"windows={len(created)}, removed={len(existing) - retired}, retired={retired}"
        )
        return sorted(created, key=lambda w: w.start_time)

    def set_available(self, window_id: int, is_available: bool) -> BrokerAvailability:
        with storage_guard(self.db, "updating availability window"):
            window = self._get(window_id)
            window.is_available = is_available
            self.db.commit()
            self.db.refresh(window)

        logger.info(f"Availability window {window_id} is_available={is_available}")
        return window

    def delete(self, window_id: int, now: Optional[datetime] = None) -> None:
        """Delete a future window without bookings."""
        with storage_guard(self.db, "deleting availability window"):
            window = self._get(window_id)

            if window.current_bookings > 0:
                raise ConflictError(
                    f"Cannot delete availability slot with {window.current_bookings} "
                    f"existing booking(s). Please cancel bookings first."
                )

            tz = broker_timezone(window.broker)
            today = (now or utc_now()).astimezone(tz).date()
            if window.date < today:
                raise InvalidRange("Cannot delete past availability slots", field="date")

            self.db.delete(window)
            self.db.commit()

        logger.info(f"Availability window deleted: id={window_id}")

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, window_id: int) -> BrokerAvailability:
        with storage_guard(self.db, "loading availability window"):
            return self._get(window_id)

    def list_for_range(
        self,
        broker_id: int,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        only_available: bool = False,
        now: Optional[datetime] = None,
    ) -> list[BrokerAvailability]:
        """
        Windows with start_date <= date <= end_date, by date then start_time.

        Defaults to today … today + availability_default_days.
        """
        with storage_guard(self.db, "listing availability windows"):
            broker = get_broker(self.db, broker_id)
            tz = broker_timezone(broker)

            if start_date is None:
                start = (now or utc_now()).astimezone(tz).date()
            else:
                start = parse_date(start_date, field="start_date")
            if end_date is None:
                end = start + timedelta(days=self.config.availability_default_days)
            else:
                end = parse_date(end_date, field="end_date")
            if end < start:
                raise InvalidRange("end_date must not be before start_date", field="end_date")

            return self.windows_between(broker.id, start, end, only_available)

    def windows_between(
        self,
        broker_id: int,
        start: date,
        end: date,
        only_available: bool = False,
    ) -> list[BrokerAvailability]:
        query = self.db.query(BrokerAvailability).filter(
            BrokerAvailability.broker_id == broker_id,
            BrokerAvailability.date >= start,
            BrokerAvailability.date <= end,
        )
        if only_available:
            query = query.filter(BrokerAvailability.is_available.is_(True))
        return query.order_by(
            BrokerAvailability.date,
            BrokerAvailability.start_time,
        ).all()

    def _get(self, window_id: int) -> BrokerAvailability:
        window = self.db.get(BrokerAvailability, window_id)
        if not window:
            raise NotFound("AvailabilityWindow", window_id)
        return window
