# broker_scheduling/services/scheduling/directory.py
"""
Read-side lookups against collaborator data owned elsewhere:
broker profiles, property → broker assignments, booked viewings.

The engine never writes these tables, except for the per-broker
schedule lock (`lock_broker_schedule`).
"""

from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...config import settings
from ...errors import NotFound
from ...models import ACTIVE_VIEWING_STATUSES, Brokers, PropertyBrokers, PropertyViewings
from .intervals import TimeInterval, resolve_timezone, to_storage


def get_broker(db: Session, broker_id: int) -> Brokers:
    """Active broker by id, NotFound otherwise."""
    broker = db.query(Brokers).filter(
        Brokers.id == broker_id,
        Brokers.is_active.is_(True),
    ).first()
    if not broker:
        raise NotFound("Broker", broker_id)
    return broker


def broker_timezone(broker: Brokers) -> ZoneInfo:
    return resolve_timezone(broker.timezone or settings.default_timezone)


def lock_broker_schedule(db: Session, broker_id: int) -> Brokers:
    """
    Serialise schedule writes for one broker within the current transaction.

    SELECT ... FOR UPDATE locks the row on PostgreSQL/MySQL; the version
    bump is a write, which takes SQLite's database write lock. Either way
    a concurrent writer for the same broker waits until we commit.
    """
    broker = (
        db.query(Brokers)
        .filter(Brokers.id == broker_id, Brokers.is_active.is_(True))
        .with_for_update()
        .first()
    )
    if not broker:
        raise NotFound("Broker", broker_id)

    db.execute(
        update(Brokers)
        .where(Brokers.id == broker_id)
        .values(schedule_version=Brokers.schedule_version + 1)
    )
    return broker


def list_active_brokers(
    db: Session,
    property_id: int,
    broker_id: Optional[int] = None,
) -> list[tuple[Brokers, bool]]:
    """Active brokers assigned to a property as (broker, is_primary), primary first."""
    query = (
        db.query(Brokers, PropertyBrokers.is_primary)
        .join(PropertyBrokers, PropertyBrokers.broker_id == Brokers.id)
        .filter(
            PropertyBrokers.property_id == property_id,
            PropertyBrokers.is_active.is_(True),
            Brokers.is_active.is_(True),
        )
    )
    if broker_id is not None:
        query = query.filter(Brokers.id == broker_id)

    rows = query.order_by(PropertyBrokers.is_primary.desc(), Brokers.id).all()
    return [(broker, bool(is_primary)) for broker, is_primary in rows]


def list_viewings_overlapping(
    db: Session,
    broker_ids: Iterable[int],
    interval: TimeInterval,
) -> list[PropertyViewings]:
    """Active (scheduled/confirmed) viewings intersecting the interval."""
    broker_ids = list(broker_ids)
    if not broker_ids:
        return []

    return (
        db.query(PropertyViewings)
        .filter(
            PropertyViewings.broker_id.in_(broker_ids),
            PropertyViewings.status.in_(ACTIVE_VIEWING_STATUSES),
            PropertyViewings.start_datetime < to_storage(interval.end),
            PropertyViewings.end_datetime > to_storage(interval.start),
        )
        .order_by(PropertyViewings.start_datetime)
        .all()
    )


def viewing_interval(viewing: PropertyViewings) -> TimeInterval:
    return TimeInterval.from_storage(viewing.start_datetime, viewing.end_datetime)
