"""Shared test fixtures and helpers."""

import os

# keep the module-level engine off the project data directory
os.environ.setdefault("SCHEDULING_DATABASE_URL", "sqlite://")

from datetime import date, datetime, timezone
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker

from broker_scheduling.database import build_engine
from broker_scheduling.models import (
    Base,
    BrokerAvailability,
    Brokers,
    PropertyBrokers,
    PropertyViewings,
)
from broker_scheduling.services.scheduling.intervals import to_storage

# Sunday morning, well before every date the tests schedule on
NOW = datetime(2030, 1, 6, 8, 30, tzinfo=timezone.utc)
DAY = date(2030, 1, 8)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'scheduling.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from broker_scheduling.database import get_db, get_session_factory
    from broker_scheduling.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_broker(
    db,
    full_name: str = "Sara Adel",
    tz: str = "UTC",
    is_active: bool = True,
    email: Optional[str] = None,
) -> Brokers:
    broker = Brokers(
        full_name=full_name,
        email=email or f"{full_name.split()[0].lower()}@example.com",
        phone="+201000000000",
        timezone=tz,
        is_active=is_active,
        schedule_version=0,
    )
    db.add(broker)
    db.commit()
    db.refresh(broker)
    return broker


def assign(db, broker: Brokers, property_id: int, is_primary: bool = False) -> PropertyBrokers:
    assignment = PropertyBrokers(
        property_id=property_id,
        broker_id=broker.id,
        is_primary=is_primary,
        assignment_type="showing",
        is_active=True,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def make_window(
    db,
    broker: Brokers,
    day: date = DAY,
    start_time: str = "09:00",
    end_time: str = "11:30",
    slot_duration_minutes: int = 60,
    break_between_slots: int = 15,
    max_bookings: int = 1,
    current_bookings: int = 0,
    is_available: bool = True,
) -> BrokerAvailability:
    """Insert a window directly, bypassing the store's date checks."""
    window = BrokerAvailability(
        broker_id=broker.id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        slot_duration_minutes=slot_duration_minutes,
        break_between_slots=break_between_slots,
        max_bookings=max_bookings,
        current_bookings=current_bookings,
        booking_type="property_viewing",
        is_available=is_available,
    )
    db.add(window)
    db.commit()
    db.refresh(window)
    return window


def make_viewing(
    db,
    broker: Brokers,
    property_id: int,
    start: datetime,
    end: datetime,
    status: str = "scheduled",
    availability_id: Optional[int] = None,
) -> PropertyViewings:
    viewing = PropertyViewings(
        property_id=property_id,
        broker_id=broker.id,
        availability_id=availability_id,
        start_datetime=to_storage(start),
        end_datetime=to_storage(end),
        duration_minutes=int((end - start).total_seconds() // 60),
        visitor_name="Visitor",
        status=status,
    )
    db.add(viewing)
    db.commit()
    db.refresh(viewing)
    return viewing


def window_stub(
    day: date = DAY,
    start_time: str = "09:00",
    end_time: str = "12:00",
    slot_duration_minutes: int = 60,
    break_between_slots: int = 15,
    max_bookings: int = 1,
    is_available: bool = True,
    **kwargs,
) -> SimpleNamespace:
    """Window-shaped object for the pure slot generator."""
    fields = dict(
        id=1,
        broker_id=1,
        date=day,
        start_time=start_time,
        end_time=end_time,
        slot_duration_minutes=slot_duration_minutes,
        break_between_slots=break_between_slots,
        max_bookings=max_bookings,
        booking_type="property_viewing",
        notes=None,
        is_available=is_available,
    )
    fields.update(kwargs)
    return SimpleNamespace(**fields)
