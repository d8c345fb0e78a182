# broker_scheduling/services/scheduling/capacity.py
"""
Capacity accounting for availability windows.

`current_bookings` is only ever changed here, and only through single
conditional UPDATE statements:

    UPDATE broker_availability
       SET current_bookings = current_bookings + 1
     WHERE id = ? AND is_available AND current_bookings < max_bookings

Two concurrent reservations can never both observe spare capacity:
the database evaluates the guard and the increment atomically, and
zero affected rows means the window was full.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...errors import CapacityExceeded, ConflictError, NotFound
from ...models import BrokerAvailability
from .storage import storage_guard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    window_id: int
    current_bookings: int
    max_bookings: int

    @property
    def capacity_remaining(self) -> int:
        return self.max_bookings - self.current_bookings


class CapacityTracker:
    """Atomic reserve / release against a window's booking counter."""

    def __init__(self, db: Session):
        self.db = db

    def reserve(self, window_id: int, commit: bool = True) -> Reservation:
        """
        Take one unit of capacity.

        Args:
            window_id: Availability window ID
            commit: False when enlisted in a caller's transaction
                    (e.g. booking creation), which then commits.

        Raises:
            CapacityExceeded: window is full
            ConflictError: window is marked unavailable
            NotFound: unknown window
        """
        with storage_guard(self.db, f"reserving capacity on window {window_id}"):
            stmt = (
                update(BrokerAvailability)
                .where(
                    BrokerAvailability.id == window_id,
                    BrokerAvailability.is_available.is_(True),
                    BrokerAvailability.current_bookings < BrokerAvailability.max_bookings,
                )
                .values(current_bookings=BrokerAvailability.current_bookings + 1)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)

            if result.rowcount != 1:
                current, maximum, is_available = self._counters(window_id)
                if not is_available:
                    raise ConflictError(f"Availability window {window_id} is not open for booking")
                logger.warning(
                    f"Capacity exceeded: window_id={window_id}, {current}/{maximum}"
                )
                raise CapacityExceeded(window_id, maximum, current)

            current, maximum, _ = self._counters(window_id)
            if commit:
                self.db.commit()

        logger.info(f"Capacity reserved: window_id={window_id}, {current}/{maximum}")
        return Reservation(window_id=window_id, current_bookings=current, max_bookings=maximum)

    def release(self, window_id: int, commit: bool = True) -> Reservation:
        """Give one unit back; the counter never drops below zero."""
        with storage_guard(self.db, f"releasing capacity on window {window_id}"):
            stmt = (
                update(BrokerAvailability)
                .where(
                    BrokerAvailability.id == window_id,
                    BrokerAvailability.current_bookings > 0,
                )
                .values(current_bookings=BrokerAvailability.current_bookings - 1)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            current, maximum, _ = self._counters(window_id)
            if result.rowcount != 1:
                logger.warning(f"Release on empty window: window_id={window_id}")
            if commit:
                self.db.commit()

        logger.info(f"Capacity released: window_id={window_id}, {current}/{maximum}")
        return Reservation(window_id=window_id, current_bookings=current, max_bookings=maximum)

    def remaining(self, window_id: int) -> int:
        with storage_guard(self.db, f"reading capacity of window {window_id}"):
            current, maximum, _ = self._counters(window_id)
        return max(0, maximum - current)

    def _counters(self, window_id: int) -> tuple[int, int, bool]:
        row = (
            self.db.query(
                BrokerAvailability.current_bookings,
                BrokerAvailability.max_bookings,
                BrokerAvailability.is_available,
            )
            .filter(BrokerAvailability.id == window_id)
            .first()
        )
        if row is None:
            raise NotFound("AvailabilityWindow", window_id)
        return row.current_bookings, row.max_bookings, bool(row.is_available)
