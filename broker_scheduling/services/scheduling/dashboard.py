# broker_scheduling/services/scheduling/dashboard.py
"""
Broker dashboard: read-only composition of viewings, windows, blocked
time and property assignments.

Sections are fetched in parallel, each in its own session. A section
whose fetch fails is logged, replaced by its empty default and listed in
`failedSections`; the rest of the dashboard is still returned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from ...models import (
    ACTIVE_VIEWING_STATUSES,
    BrokerAvailability,
    BrokerBlockedTimes,
    Brokers,
    PropertyBrokers,
    PropertyViewings,
)
from .blocked_periods import BlockedPeriodManager, period_interval
from .config import SchedulingConfig, get_scheduling_config
from .directory import broker_timezone, get_broker, list_viewings_overlapping, viewing_interval
from .generator import generate_slots, window_remaining
from .intervals import TimeInterval, from_storage, to_storage, utc_now
from .storage import storage_guard
from .windows import AvailabilityWindowStore

logger = logging.getLogger(__name__)


# ── Serialization ────────────────────────────────────────────────────────


def viewing_to_dict(viewing: PropertyViewings, tz: ZoneInfo) -> dict:
    start = from_storage(viewing.start_datetime).astimezone(tz)
    end = from_storage(viewing.end_datetime).astimezone(tz)
    return {
        "id": viewing.id,
        "property_id": viewing.property_id,
        "availability_id": viewing.availability_id,
        "visitor_name": viewing.visitor_name,
        "viewing_date": start.date().isoformat(),
        "viewing_time": start.strftime("%H:%M"),
        "end_time": end.strftime("%H:%M"),
        "start_datetime": start.isoformat(),
        "end_datetime": end.isoformat(),
        "duration_minutes": viewing.duration_minutes,
        "status": viewing.status,
    }


def window_to_dict(window: BrokerAvailability) -> dict:
    return {
        "id": window.id,
        "date": window.date.isoformat(),
        "start_time": window.start_time,
        "end_time": window.end_time,
        "current_bookings": window.current_bookings,
        "max_bookings": window.max_bookings,
        "is_available": window.is_available,
    }


def blocked_to_dict(period: BrokerBlockedTimes) -> dict:
    return {
        "id": period.id,
        "start_datetime": from_storage(period.start_datetime).isoformat(),
        "end_datetime": from_storage(period.end_datetime).isoformat(),
        "reason": period.reason,
        "block_type": period.block_type,
    }


def assignment_to_dict(assignment: PropertyBrokers) -> dict:
    return {
        "id": assignment.id,
        "property_id": assignment.property_id,
        "is_primary": assignment.is_primary,
        "assignment_type": assignment.assignment_type,
        "created_at": assignment.created_at.isoformat() if assignment.created_at else None,
    }


# ── Sections ─────────────────────────────────────────────────────────────


class DashboardContext:
    """Everything a section needs besides its session."""

    def __init__(self, broker: Brokers, config: SchedulingConfig, now: datetime):
        self.broker_id = broker.id
        self.tz = broker_timezone(broker)
        self.config = config
        self.now = now.astimezone(self.tz)
        self.today = self.now.date()

    def local_midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)


def _count_viewings(db: Session, ctx: DashboardContext, since: Optional[datetime] = None) -> int:
    query = db.query(func.count(PropertyViewings.id)).filter(
        PropertyViewings.broker_id == ctx.broker_id
    )
    if since is not None:
        query = query.filter(PropertyViewings.start_datetime >= to_storage(since))
    return query.scalar() or 0


def _fetch_stats(db: Session, ctx: DashboardContext) -> dict:
    # week starts on Sunday
    week_start = ctx.today - timedelta(days=(ctx.today.weekday() + 1) % 7)
    month_start = ctx.today.replace(day=1)

    total_properties = (
        db.query(func.count(PropertyBrokers.id))
        .filter(
            PropertyBrokers.broker_id == ctx.broker_id,
            PropertyBrokers.is_active.is_(True),
        )
        .scalar()
    ) or 0

    return {
        "total_viewings": _count_viewings(db, ctx),
        "viewings_this_week": _count_viewings(db, ctx, ctx.local_midnight(week_start)),
        "viewings_this_month": _count_viewings(db, ctx, ctx.local_midnight(month_start)),
        "total_properties": total_properties,
    }


def _fetch_upcoming_viewings(db: Session, ctx: DashboardContext) -> list[dict]:
    start = ctx.local_midnight(ctx.today)
    end = ctx.local_midnight(ctx.today + timedelta(days=ctx.config.dashboard_upcoming_days + 1))
    viewings = (
        db.query(PropertyViewings)
        .filter(
            PropertyViewings.broker_id == ctx.broker_id,
            PropertyViewings.status.in_(ACTIVE_VIEWING_STATUSES),
            PropertyViewings.start_datetime >= to_storage(start),
            PropertyViewings.start_datetime < to_storage(end),
        )
        .order_by(PropertyViewings.start_datetime)
        .all()
    )
    return [viewing_to_dict(v, ctx.tz) for v in viewings]


def _fetch_recent_viewings(db: Session, ctx: DashboardContext) -> list[dict]:
    start = ctx.local_midnight(ctx.today - timedelta(days=ctx.config.dashboard_recent_days))
    end = ctx.local_midnight(ctx.today + timedelta(days=1))
    viewings = (
        db.query(PropertyViewings)
        .filter(
            PropertyViewings.broker_id == ctx.broker_id,
            PropertyViewings.start_datetime >= to_storage(start),
            PropertyViewings.start_datetime < to_storage(end),
        )
        .order_by(PropertyViewings.start_datetime.desc())
        .limit(ctx.config.dashboard_recent_limit)
        .all()
    )
    return [viewing_to_dict(v, ctx.tz) for v in viewings]


def _summary_range(ctx: DashboardContext) -> tuple[date, date]:
    return ctx.today, ctx.today + timedelta(days=ctx.config.dashboard_availability_days)


def _fetch_availability(db: Session, ctx: DashboardContext) -> list[dict]:
    start, end = _summary_range(ctx)
    windows = AvailabilityWindowStore(db, ctx.config).windows_between(
        ctx.broker_id, start, end, only_available=True
    )
    return [window_to_dict(w) for w in windows]


def _fetch_availability_summary(db: Session, ctx: DashboardContext) -> dict:
    start, end = _summary_range(ctx)
    windows = AvailabilityWindowStore(db, ctx.config).windows_between(
        ctx.broker_id, start, end, only_available=True
    )
    horizon = TimeInterval(ctx.local_midnight(start), ctx.local_midnight(end + timedelta(days=1)))
    blocked = [
        period_interval(p)
        for p in BlockedPeriodManager(db, ctx.config).overlapping(ctx.broker_id, horizon)
    ]
    booked = [viewing_interval(v) for v in list_viewings_overlapping(db, [ctx.broker_id], horizon)]

    total = available = booked_units = 0
    days: set[date] = set()
    for window in windows:
        for slot in generate_slots(window, blocked, booked, ctx.tz, window_remaining(window)):
            total += 1
            booked_units += slot.booked
            if slot.capacity_remaining > 0:
                available += 1
                days.add(window.date)

    return {
        "totalSlots": total,
        "availableSlots": available,
        "bookedSlots": booked_units,
        "daysWithAvailability": len(days),
    }


def _fetch_blocked_times(db: Session, ctx: DashboardContext) -> list[dict]:
    horizon = TimeInterval(ctx.now, ctx.now + timedelta(days=ctx.config.dashboard_upcoming_days))
    periods = BlockedPeriodManager(db, ctx.config).overlapping(ctx.broker_id, horizon)
    return [blocked_to_dict(p) for p in periods]


def _fetch_property_assignments(db: Session, ctx: DashboardContext) -> list[dict]:
    assignments = (
        db.query(PropertyBrokers)
        .filter(
            PropertyBrokers.broker_id == ctx.broker_id,
            PropertyBrokers.is_active.is_(True),
        )
        .order_by(PropertyBrokers.created_at.desc(), PropertyBrokers.id.desc())
        .all()
    )
    return [assignment_to_dict(a) for a in assignments]


EMPTY_STATS = {
    "total_viewings": 0,
    "viewings_this_week": 0,
    "viewings_this_month": 0,
    "total_properties": 0,
}

EMPTY_SUMMARY = {
    "totalSlots": 0,
    "availableSlots": 0,
    "bookedSlots": 0,
    "daysWithAvailability": 0,
}


def _run_section(
    session_factory: sessionmaker,
    name: str,
    fetch: Callable[[Session, DashboardContext], Any],
    ctx: DashboardContext,
) -> tuple[Any, bool]:
    db = session_factory()
    try:
        return fetch(db, ctx), True
    except Exception:
        logger.exception(f"Dashboard section '{name}' failed for broker_id={ctx.broker_id}")
        return None, False
    finally:
        db.close()


# ── Entry point ──────────────────────────────────────────────────────────


def build_broker_dashboard(
    session_factory: sessionmaker,
    broker_id: int,
    config: SchedulingConfig | None = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Compose the broker dashboard.

    Raises:
        NotFound: unknown or inactive broker (nothing else is fetched)
    """
    config = config or get_scheduling_config()
    now = now or utc_now()

    db = session_factory()
    try:
        with storage_guard(db, "loading broker for dashboard"):
            broker = get_broker(db, broker_id)
            ctx = DashboardContext(broker, config, now)
            broker_info = {
                "id": broker.id,
                "full_name": broker.full_name,
                "email": broker.email,
                "phone": broker.phone,
                "timezone": broker.timezone,
            }
    finally:
        db.close()

    sections: dict[str, tuple[Callable, Any]] = {
        "stats": (_fetch_stats, EMPTY_STATS),
        "upcomingViewings": (_fetch_upcoming_viewings, []),
        "recentViewings": (_fetch_recent_viewings, []),
        "availability": (_fetch_availability, []),
        "availabilitySummary": (_fetch_availability_summary, EMPTY_SUMMARY),
        "blockedTimes": (_fetch_blocked_times, []),
        "propertyAssignments": (_fetch_property_assignments, []),
    }

    with ThreadPoolExecutor(max_workers=config.dashboard_workers) as pool:
        futures = {
            name: pool.submit(_run_section, session_factory, name, fetch, ctx)
            for name, (fetch, _) in sections.items()
        }
        outcomes = {name: future.result() for name, future in futures.items()}

    result: dict[str, Any] = {"broker": broker_info}
    status: dict[str, str] = {}
    for name, (_, default) in sections.items():
        data, ok = outcomes[name]
        result[name] = data if ok else (dict(default) if isinstance(default, dict) else list(default))
        status[name] = "ok" if ok else "failed"

    failed = [name for name, state in status.items() if state == "failed"]
    if failed:
        logger.warning(f"Dashboard degraded for broker_id={broker_id}: {failed}")

    result["sections"] = status
    result["failedSections"] = failed
    return result
