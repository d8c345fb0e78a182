"""Tests for atomic capacity reservation."""

import threading

import pytest

from broker_scheduling.errors import CapacityExceeded, ConflictError, NotFound
from broker_scheduling.models import BrokerAvailability
from broker_scheduling.services.scheduling import CapacityTracker
from tests.conftest import make_broker, make_window


@pytest.fixture
def broker(db):
    return make_broker(db)


def bookings_of(db, window_id: int) -> int:
    db.expire_all()
    return db.get(BrokerAvailability, window_id).current_bookings


class TestReserve:
    def test_reserve_until_full(self, db, broker):
        window = make_window(db, broker, max_bookings=2)
        tracker = CapacityTracker(db)

        first = tracker.reserve(window.id)
        assert first.current_bookings == 1
        assert first.capacity_remaining == 1
        tracker.reserve(window.id)

        with pytest.raises(CapacityExceeded) as exc:
            tracker.reserve(window.id)
        detail = exc.value.to_detail()
        assert detail["error"] == "capacity_exceeded"
        assert detail["maxBookings"] == 2
        assert detail["currentBookings"] == 2
        assert detail["capacityRemaining"] == 0
        assert bookings_of(db, window.id) == 2

    def test_unavailable_window(self, db, broker):
        window = make_window(db, broker, is_available=False)
        with pytest.raises(ConflictError):
            CapacityTracker(db).reserve(window.id)
        assert bookings_of(db, window.id) == 0

    def test_unknown_window(self, db):
        with pytest.raises(NotFound):
            CapacityTracker(db).reserve(999)

    def test_reserve_without_commit_rolls_back(self, db, broker):
        window = make_window(db, broker)
        CapacityTracker(db).reserve(window.id, commit=False)
        db.rollback()
        assert bookings_of(db, window.id) == 0


class TestRelease:
    def test_release_returns_capacity(self, db, broker):
        window = make_window(db, broker, max_bookings=2, current_bookings=2)
        tracker = CapacityTracker(db)
        assert tracker.release(window.id).current_bookings == 1
        assert tracker.remaining(window.id) == 1

    def test_release_never_below_zero(self, db, broker):
        window = make_window(db, broker)
        assert CapacityTracker(db).release(window.id).current_bookings == 0
        assert bookings_of(db, window.id) == 0


class TestConcurrentReserve:
    @pytest.mark.parametrize("max_bookings, attempts", [(1, 2), (3, 8)])
    def test_successes_capped_by_capacity(self, session_factory, db, broker, max_bookings, attempts):
        window = make_window(db, broker, max_bookings=max_bookings)
        barrier = threading.Barrier(attempts)
        outcomes: list[str] = []
        lock = threading.Lock()

        def worker():
            session = session_factory()
            try:
                barrier.wait()
                CapacityTracker(session).reserve(window.id)
                outcome = "ok"
            except CapacityExceeded:
                outcome = "full"
            finally:
                session.close()
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == min(attempts, max_bookings)
        assert outcomes.count("full") == attempts - max_bookings
        assert bookings_of(db, window.id) == max_bookings
