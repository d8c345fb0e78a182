# broker_scheduling/services/scheduling/blocked_periods.py
"""
Blocked periods: broker-specific exceptions that remove availability.

Rules enforced on create:
✓ ISO-8601 datetimes with explicit offset
✓ end > start
✓ start >= now truncated to the hour (broker timezone), so the ongoing hour can be blocked
✓ no overlap with any existing period of the broker (checked under the broker lock)

A recurring period is a template. It is stored as-is and synthesizes
non-recurring instances up to `recurring_until`; instances never recur.
Instances that collide with existing periods are skipped and reported,
the template itself is always kept.

Periods are immutable: corrections are delete + create.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...errors import ConflictError, InvalidRange, InvalidTimeFormat, NotFound, ValidationError
from ...models import BLOCK_TYPES, RECURRING_PATTERNS, BrokerBlockedTimes
from .config import SchedulingConfig, get_scheduling_config
from .directory import broker_timezone, get_broker, lock_broker_schedule
from .intervals import (
    TimeInterval,
    from_storage,
    overlaps,
    parse_date,
    parse_datetime,
    to_storage,
    utc_now,
)
from .storage import storage_guard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recurrence:
    pattern: str                         # daily / weekly / monthly
    until: Union[str, datetime, date]    # inclusive bound on instance start


@dataclass
class BlockedPeriodCreation:
    """Outcome of a create call: the stored period plus recurrence results."""
    blocked_period: BrokerBlockedTimes
    instances: list[BrokerBlockedTimes] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)
    truncated: bool = False


def period_interval(period: BrokerBlockedTimes) -> TimeInterval:
    return TimeInterval.from_storage(period.start_datetime, period.end_datetime)


def period_to_dict(period: BrokerBlockedTimes) -> dict:
    """Compact representation used in conflict reports."""
    return {
        "id": period.id,
        "start_datetime": from_storage(period.start_datetime).isoformat(),
        "end_datetime": from_storage(period.end_datetime).isoformat(),
        "reason": period.reason,
        "block_type": period.block_type,
    }


def truncate_to_hour(now: datetime, tz: ZoneInfo) -> datetime:
    """Start of the current local hour: blocking the ongoing hour is allowed."""
    return now.astimezone(tz).replace(minute=0, second=0, microsecond=0)


def add_months(dt: datetime, months: int) -> datetime:
    """Same wall-clock time `months` later, day clamped to the month's end."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def recurrence_start(base: datetime, pattern: str, k: int) -> datetime:
    """
    k-th occurrence after `base`, always computed from the base so
    month clamping (Jan 31 → Feb 28) never drifts later occurrences.
    """
    if pattern == "daily":
        return base + timedelta(days=k)
    if pattern == "weekly":
        return base + timedelta(days=7 * k)
    if pattern == "monthly":
        return add_months(base, k)
    raise ValidationError(f"Unknown recurring pattern: {pattern!r}", field="recurring_pattern")


class BlockedPeriodManager:
    """Validated, conflict-checked access to a broker's blocked periods."""

    def __init__(self, db: Session, config: SchedulingConfig | None = None):
        self.db = db
        self.config = config or get_scheduling_config()

    # ── Write ────────────────────────────────────────────────────────────

    def create(
        self,
        broker_id: int,
        start: Union[str, datetime],
        end: Union[str, datetime],
        reason: str = "",
        block_type: str = "personal",
        recurrence: Optional[Recurrence] = None,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BlockedPeriodCreation:
        """
        Create a blocked period (and its recurring instances).

        Raises:
            NotFound: unknown or inactive broker
            InvalidTimeFormat / InvalidRange / ValidationError: nothing persisted
            ConflictError: overlaps existing periods (returned in `conflicts`)
            StorageError: transient database failure
        """
        with storage_guard(self.db, "creating blocked period"):
            broker = get_broker(self.db, broker_id)
            tz = broker_timezone(broker)

            start_dt = parse_datetime(start, tz, field="start_datetime")
            end_dt = parse_datetime(end, tz, field="end_datetime")
            if end_dt <= start_dt:
                raise InvalidRange("End datetime must be after start datetime", field="end_datetime")

            floor = truncate_to_hour(now or utc_now(), tz)
            if start_dt < floor:
                raise InvalidRange("Cannot create blocked time in the past", field="start_datetime")

            if block_type not in BLOCK_TYPES:
                raise ValidationError(
                    f"block_type must be one of {', '.join(BLOCK_TYPES)}",
                    field="block_type",
                )

            until_dt = None
            if recurrence is not None:
                if recurrence.pattern not in RECURRING_PATTERNS:
                    raise ValidationError(
                        f"recurring_pattern must be one of {', '.join(RECURRING_PATTERNS)}",
                        field="recurring_pattern",
                    )
                until_dt = self._parse_until(recurrence.until, tz)
                if until_dt < start_dt:
                    raise InvalidRange(
                        "recurring_until must not be before start datetime",
                        field="recurring_until",
                    )

            interval = TimeInterval(start_dt, end_dt)

            # Conflict check and insert share one transaction under the broker lock
            lock_broker_schedule(self.db, broker.id)
            conflicts = self._find_conflicts(broker.id, interval)
            if conflicts:
                logger.warning(
                    f"Blocked time rejected: broker_id={broker.id}, "
                    f"{start_dt.isoformat()}–{end_dt.isoformat()} overlaps "
                    f"{[c.id for c in conflicts]}"
                )
                raise ConflictError(
                    "Time period conflicts with existing blocked time",
                    conflicts=[period_to_dict(c) for c in conflicts],
                )

            base = BrokerBlockedTimes(
                broker_id=broker.id,
                start_datetime=to_storage(start_dt),
                end_datetime=to_storage(end_dt),
                reason=reason or "",
                block_type=block_type,
                is_recurring=recurrence is not None,
                recurring_pattern=recurrence.pattern if recurrence else None,
                recurring_until=to_storage(until_dt) if until_dt else None,
                created_by=created_by,
            )
            self.db.add(base)
            self.db.flush()

            result = BlockedPeriodCreation(blocked_period=base)
            if recurrence is not None:
                self._expand(base, interval, recurrence.pattern, until_dt, result)

            self.db.commit()
            self.db.refresh(base)

        logger.info(
            f"Blocked time created: id={base.id}, broker_id={broker.id}, "
            f"{start_dt.isoformat()}–{end_dt.isoformat()}, "
            f"instances={len(result.instances)}, failed={len(result.failures)}"
        )
        return result

    def delete(self, period_id: int) -> None:
        """Hard delete. Instances of a template are independent and stay."""
        with storage_guard(self.db, "deleting blocked period"):
            period = self.db.get(BrokerBlockedTimes, period_id)
            if not period:
                raise NotFound("BlockedPeriod", period_id)
            broker_id = period.broker_id
            self.db.delete(period)
            self.db.commit()

        logger.info(f"Blocked time deleted: id={period_id}, broker_id={broker_id}")

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, period_id: int) -> BrokerBlockedTimes:
        with storage_guard(self.db, "loading blocked period"):
            period = self.db.get(BrokerBlockedTimes, period_id)
        if not period:
            raise NotFound("BlockedPeriod", period_id)
        return period

    def list_periods(
        self,
        broker_id: int,
        start: Union[str, date, datetime, None] = None,
        end: Union[str, date, datetime, None] = None,
        now: Optional[datetime] = None,
    ) -> list[BrokerBlockedTimes]:
        """
        Periods intersecting [start, end), ascending by start.

        Bounds may be ISO datetimes or YYYY-MM-DD dates; a date end bound
        includes that whole local day. Defaults to
        now … now + blocked_period_default_days.
        """
        with storage_guard(self.db, "listing blocked periods"):
            broker = get_broker(self.db, broker_id)
            tz = broker_timezone(broker)

            if start is None:
                start_dt = (now or utc_now()).astimezone(tz)
            else:
                start_dt = self._parse_bound(start, tz, "start_date", is_end=False)
            if end is None:
                end_dt = start_dt + timedelta(days=self.config.blocked_period_default_days)
            else:
                end_dt = self._parse_bound(end, tz, "end_date", is_end=True)
            if end_dt <= start_dt:
                raise InvalidRange("end_date must be after start_date", field="end_date")

            return self.overlapping(broker.id, TimeInterval(start_dt, end_dt))

    def overlapping(self, broker_id: int, interval: TimeInterval) -> list[BrokerBlockedTimes]:
        """Periods of one broker overlapping the interval (no broker check)."""
        candidates = (
            self.db.query(BrokerBlockedTimes)
            .filter(
                BrokerBlockedTimes.broker_id == broker_id,
                BrokerBlockedTimes.start_datetime < to_storage(interval.end),
                BrokerBlockedTimes.end_datetime > to_storage(interval.start),
            )
            .order_by(BrokerBlockedTimes.start_datetime, BrokerBlockedTimes.id)
            .all()
        )
        return [p for p in candidates if overlaps(period_interval(p), interval)]

    # ── Helpers ──────────────────────────────────────────────────────────

    def _find_conflicts(self, broker_id: int, interval: TimeInterval) -> list[BrokerBlockedTimes]:
        return self.overlapping(broker_id, interval)

    def _parse_bound(
        self,
        value: Union[str, date, datetime],
        tz: ZoneInfo,
        field: str,
        is_end: bool,
    ) -> datetime:
        if isinstance(value, datetime):
            return parse_datetime(value, tz, field=field)
        if isinstance(value, str) and "T" in value:
            return parse_datetime(value, tz, field=field)
        day = parse_date(value, field=field)
        if is_end:
            day += timedelta(days=1)
        return datetime.combine(day, time.min, tzinfo=tz)

    def _parse_until(self, value: Union[str, datetime, date], tz: ZoneInfo) -> datetime:
        """`until` as a datetime; a bare date means the end of that local day."""
        if isinstance(value, datetime):
            return parse_datetime(value, tz, field="recurring_until")
        if isinstance(value, date):
            return datetime.combine(value, time.max, tzinfo=tz)
        try:
            day = parse_date(value, field="recurring_until")
        except InvalidTimeFormat:
            return parse_datetime(value, tz, field="recurring_until")
        return datetime.combine(day, time.max, tzinfo=tz)

    def _expand(
        self,
        template: BrokerBlockedTimes,
        interval: TimeInterval,
        pattern: str,
        until: datetime,
        result: BlockedPeriodCreation,
    ) -> None:
        """Synthesize non-recurring instances of `template` up to `until`."""
        duration = interval.duration
        k = 1
        while True:
            instance_start = recurrence_start(interval.start, pattern, k)
            if instance_start > until:
                break
            if len(result.instances) + len(result.failures) >= self.config.max_recurring_instances:
                result.truncated = True
                logger.warning(
                    f"Recurrence truncated: template_id={template.id}, "
                    f"limit={self.config.max_recurring_instances}"
                )
                break
            k += 1

            candidate = TimeInterval(instance_start, instance_start + duration)
            conflicts = self._find_conflicts(template.broker_id, candidate)
            if conflicts:
                result.failures.append({
                    "start_datetime": candidate.start.isoformat(),
                    "end_datetime": candidate.end.isoformat(),
                    "error": "conflict",
                    "conflicts": [period_to_dict(c) for c in conflicts],
                })
                continue

            instance = BrokerBlockedTimes(
                broker_id=template.broker_id,
                start_datetime=to_storage(candidate.start),
                end_datetime=to_storage(candidate.end),
                reason=template.reason,
                block_type=template.block_type,
                is_recurring=False,
                recurring_pattern=None,
                recurring_until=None,
                parent_id=template.id,
                created_by=template.created_by,
            )
            self.db.add(instance)
            # visible to the next instance's conflict query
            self.db.flush()
            result.instances.append(instance)

        if result.failures:
            logger.warning(
                f"Recurring instances skipped: template_id={template.id}, "
                f"count={len(result.failures)}"
            )
