"""Tests for blocked period creation, recurrence and listing."""

import threading
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from broker_scheduling.errors import (
    ConflictError,
    InvalidRange,
    InvalidTimeFormat,
    NotFound,
    ValidationError,
)
from broker_scheduling.models import BrokerBlockedTimes
from broker_scheduling.services.scheduling import (
    BlockedPeriodManager,
    Recurrence,
    SchedulingConfig,
)
from broker_scheduling.services.scheduling.blocked_periods import (
    add_months,
    recurrence_start,
    truncate_to_hour,
)
from tests.conftest import NOW, make_broker

UTC = timezone.utc


@pytest.fixture
def broker(db):
    return make_broker(db)


@pytest.fixture
def manager(db):
    return BlockedPeriodManager(db)


def count_periods(db) -> int:
    return db.query(BrokerBlockedTimes).count()


class TestCreate:
    def test_create_stores_naive_utc(self, db, broker, manager):
        result = manager.create(
            broker.id,
            "2030-01-08T12:00:00+02:00",
            "2030-01-08T14:00:00+02:00",
            reason="Dentist",
            now=NOW,
        )
        period = result.blocked_period
        assert period.id is not None
        assert period.start_datetime == datetime(2030, 1, 8, 10)
        assert period.end_datetime == datetime(2030, 1, 8, 12)
        assert period.is_recurring is False
        assert result.instances == []

    def test_overlap_rejected_with_conflicts(self, db, broker, manager):
        first = manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z", now=NOW)

        with pytest.raises(ConflictError) as exc:
            manager.create(broker.id, "2030-01-08T11:00:00Z", "2030-01-08T13:00:00Z", now=NOW)

        conflicts = exc.value.conflicts
        assert [c["id"] for c in conflicts] == [first.blocked_period.id]
        assert exc.value.to_detail()["error"] == "conflict"
        assert count_periods(db) == 1

    def test_afternoon_overlap_lists_first_period(self, db, broker, manager):
        first = manager.create(broker.id, "2030-01-08T14:00:00Z", "2030-01-08T15:00:00Z", now=NOW)
        with pytest.raises(ConflictError) as exc:
            manager.create(broker.id, "2030-01-08T14:30:00Z", "2030-01-08T15:30:00Z", now=NOW)
        assert exc.value.conflicts[0]["id"] == first.blocked_period.id
        assert exc.value.conflicts[0]["start_datetime"] == "2030-01-08T14:00:00+00:00"

    def test_overlap_detected_across_offsets(self, db, broker, manager):
        manager.create(broker.id, "2030-01-08T10:00:00+00:00", "2030-01-08T11:00:00+00:00", now=NOW)
        with pytest.raises(ConflictError):
            manager.create(broker.id, "2030-01-08T12:30:00+02:00", "2030-01-08T13:30:00+02:00", now=NOW)

    def test_adjacent_period_allowed(self, db, broker, manager):
        manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z", now=NOW)
        manager.create(broker.id, "2030-01-08T12:00:00Z", "2030-01-08T13:00:00Z", now=NOW)
        assert count_periods(db) == 2

    def test_other_broker_does_not_conflict(self, db, broker, manager):
        other = make_broker(db, full_name="Omar Nabil")
        manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z", now=NOW)
        manager.create(other.id, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z", now=NOW)
        assert count_periods(db) == 2

    def test_end_before_start_rejected(self, db, broker, manager):
        with pytest.raises(InvalidRange) as exc:
            manager.create(broker.id, "2030-01-08T12:00:00Z", "2030-01-08T12:00:00Z", now=NOW)
        assert exc.value.field == "end_datetime"
        assert count_periods(db) == 0

    def test_missing_offset_rejected(self, db, broker, manager):
        with pytest.raises(InvalidTimeFormat) as exc:
            manager.create(broker.id, "2030-01-08T10:00:00", "2030-01-08T12:00:00Z", now=NOW)
        assert exc.value.field == "start_datetime"
        assert count_periods(db) == 0

    def test_unknown_block_type_rejected(self, db, broker, manager):
        with pytest.raises(ValidationError) as exc:
            manager.create(
                broker.id, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z",
                block_type="holiday", now=NOW,
            )
        assert exc.value.field == "block_type"

    def test_unknown_broker(self, db, manager):
        with pytest.raises(NotFound):
            manager.create(999, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z", now=NOW)

    def test_inactive_broker(self, db, manager):
        inactive = make_broker(db, full_name="Old Broker", is_active=False)
        with pytest.raises(NotFound):
            manager.create(inactive.id, "2030-01-08T10:00:00Z", "2030-01-08T12:00:00Z", now=NOW)


class TestPastBoundary:
    def test_start_in_current_hour_allowed(self, db, broker, manager):
        # NOW is 08:30Z: the 08:00 hour may still be blocked
        manager.create(broker.id, "2030-01-06T08:00:00Z", "2030-01-06T09:00:00Z", now=NOW)
        assert count_periods(db) == 1

    def test_start_before_current_hour_rejected(self, db, broker, manager):
        with pytest.raises(InvalidRange) as exc:
            manager.create(broker.id, "2030-01-06T07:59:00Z", "2030-01-06T09:00:00Z", now=NOW)
        assert exc.value.field == "start_datetime"

    def test_truncation_uses_broker_timezone(self):
        # India is UTC+05:30, so the local hour starts at :30 UTC
        floor = truncate_to_hour(NOW, ZoneInfo("Asia/Kolkata"))
        assert floor.astimezone(UTC) == datetime(2030, 1, 6, 8, 30, tzinfo=UTC)


class TestRecurrence:
    def test_weekly_ten_weeks(self, db, broker, manager):
        result = manager.create(
            broker.id,
            "2030-01-08T10:00:00Z",
            "2030-01-08T11:00:00Z",
            recurrence=Recurrence("weekly", "2030-03-19T10:00:00Z"),
            now=NOW,
        )
        template = result.blocked_period
        assert template.is_recurring is True
        assert template.recurring_pattern == "weekly"
        assert len(result.instances) == 10
        assert result.failures == []
        assert result.truncated is False

        starts = [i.start_datetime for i in result.instances]
        assert starts[0] == datetime(2030, 1, 15, 10)
        assert starts[-1] == datetime(2030, 3, 19, 10)
        for instance in result.instances:
            assert instance.is_recurring is False
            assert instance.parent_id == template.id
            assert instance.end_datetime - instance.start_datetime == timedelta(hours=1)

    def test_until_as_date_includes_that_day(self, db, broker, manager):
        result = manager.create(
            broker.id,
            "2030-01-08T10:00:00Z",
            "2030-01-08T11:00:00Z",
            recurrence=Recurrence("daily", "2030-01-11"),
            now=NOW,
        )
        assert [i.start_datetime.day for i in result.instances] == [9, 10, 11]

    def test_conflicting_instances_reported_not_fatal(self, db, broker, manager):
        manager.create(broker.id, "2030-01-15T10:30:00Z", "2030-01-15T11:00:00Z", now=NOW)

        result = manager.create(
            broker.id,
            "2030-01-08T10:00:00Z",
            "2030-01-08T11:00:00Z",
            recurrence=Recurrence("weekly", "2030-01-29T23:00:00Z"),
            now=NOW,
        )
        assert [i.start_datetime.day for i in result.instances] == [22, 29]
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure["start_datetime"].startswith("2030-01-15T10:00")
        assert failure["error"] == "conflict"
        assert len(failure["conflicts"]) == 1
        # template + 2 instances + the pre-existing period
        assert count_periods(db) == 4

    def test_instances_do_not_overlap_each_other(self, db, broker, manager):
        # 36h daily block: every instance would collide with its predecessor
        result = manager.create(
            broker.id,
            "2030-01-08T00:00:00Z",
            "2030-01-09T12:00:00Z",
            recurrence=Recurrence("daily", "2030-01-11"),
            now=NOW,
        )
        kept = [result.blocked_period, *result.instances]
        for i, a in enumerate(kept):
            for b in kept[i + 1:]:
                assert not (a.start_datetime < b.end_datetime and b.start_datetime < a.end_datetime)
        assert result.failures

    def test_instance_limit_truncates(self, db, broker):
        manager = BlockedPeriodManager(db, SchedulingConfig(max_recurring_instances=3))
        result = manager.create(
            broker.id,
            "2030-01-08T10:00:00Z",
            "2030-01-08T11:00:00Z",
            recurrence=Recurrence("daily", "2030-01-31"),
            now=NOW,
        )
        assert len(result.instances) == 3
        assert result.truncated is True

    def test_until_before_start_rejected(self, db, broker, manager):
        with pytest.raises(InvalidRange):
            manager.create(
                broker.id,
                "2030-01-08T10:00:00Z",
                "2030-01-08T11:00:00Z",
                recurrence=Recurrence("weekly", "2030-01-01"),
                now=NOW,
            )
        assert count_periods(db) == 0

    def test_unknown_pattern_rejected(self, db, broker, manager):
        with pytest.raises(ValidationError) as exc:
            manager.create(
                broker.id,
                "2030-01-08T10:00:00Z",
                "2030-01-08T11:00:00Z",
                recurrence=Recurrence("yearly", "2031-01-01"),
                now=NOW,
            )
        assert exc.value.field == "recurring_pattern"

    def test_instance_survives_template_delete(self, db, broker, manager):
        result = manager.create(
            broker.id,
            "2030-01-08T10:00:00Z",
            "2030-01-08T11:00:00Z",
            recurrence=Recurrence("daily", "2030-01-09"),
            now=NOW,
        )
        instance_id = result.instances[0].id
        manager.delete(result.blocked_period.id)
        assert manager.get(instance_id).start_datetime == datetime(2030, 1, 9, 10)


class TestRecurrenceStepping:
    def test_monthly_clamps_to_month_end(self):
        base = datetime(2030, 1, 31, 10, tzinfo=UTC)
        assert recurrence_start(base, "monthly", 1) == datetime(2030, 2, 28, 10, tzinfo=UTC)
        # computed from the base, not from the clamped February date
        assert recurrence_start(base, "monthly", 2) == datetime(2030, 3, 31, 10, tzinfo=UTC)

    def test_add_months_across_year(self):
        assert add_months(datetime(2030, 11, 30, 9, tzinfo=UTC), 3) == datetime(2031, 2, 28, 9, tzinfo=UTC)

    def test_daily_keeps_local_wall_clock_across_dst(self):
        berlin = ZoneInfo("Europe/Berlin")
        base = datetime(2030, 3, 30, 10, tzinfo=berlin)
        nxt = recurrence_start(base, "daily", 1)
        assert nxt.hour == 10
        assert nxt.utcoffset() == timedelta(hours=2)
        assert base.utcoffset() == timedelta(hours=1)


class TestReadAndDelete:
    def test_list_periods_in_range(self, db, broker, manager):
        manager.create(broker.id, "2030-01-09T10:00:00Z", "2030-01-09T11:00:00Z", now=NOW)
        manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T11:00:00Z", now=NOW)
        manager.create(broker.id, "2030-02-20T10:00:00Z", "2030-02-20T11:00:00Z", now=NOW)

        periods = manager.list_periods(broker.id, "2030-01-08", "2030-01-09")
        assert [p.start_datetime.day for p in periods] == [8, 9]

    def test_list_periods_default_range(self, db, broker, manager):
        manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T11:00:00Z", now=NOW)
        manager.create(broker.id, "2030-06-01T10:00:00Z", "2030-06-01T11:00:00Z", now=NOW)
        periods = manager.list_periods(broker.id, now=NOW)
        assert len(periods) == 1

    def test_list_periods_bad_range(self, db, broker, manager):
        with pytest.raises(InvalidRange):
            manager.list_periods(broker.id, "2030-01-09", "2030-01-07")

    def test_delete_then_get(self, db, broker, manager):
        result = manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T11:00:00Z", now=NOW)
        period_id = result.blocked_period.id
        manager.delete(period_id)
        with pytest.raises(NotFound):
            manager.get(period_id)

    def test_delete_unknown(self, db, manager):
        with pytest.raises(NotFound):
            manager.delete(12345)

    def test_deleted_period_frees_time(self, db, broker, manager):
        result = manager.create(broker.id, "2030-01-08T10:00:00Z", "2030-01-08T11:00:00Z", now=NOW)
        manager.delete(result.blocked_period.id)
        manager.create(broker.id, "2030-01-08T10:30:00Z", "2030-01-08T11:30:00Z", now=NOW)
        assert count_periods(db) == 1


class TestConcurrentCreate:
    def test_overlapping_creates_admit_one(self, session_factory, db, broker):
        barrier = threading.Barrier(4)
        outcomes: list[str] = []
        lock = threading.Lock()

        def worker(minute: int):
            session = session_factory()
            try:
                barrier.wait()
                BlockedPeriodManager(session).create(
                    broker.id,
                    f"2030-01-08T10:{minute:02d}:00Z",
                    f"2030-01-08T11:{minute:02d}:00Z",
                    now=NOW,
                )
                outcome = "ok"
            except ConflictError:
                outcome = "conflict"
            finally:
                session.close()
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker, args=(m,)) for m in (0, 10, 20, 30)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["conflict", "conflict", "conflict", "ok"]
        db.expire_all()
        assert count_periods(db) == 1
