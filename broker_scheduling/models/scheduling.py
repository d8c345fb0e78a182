from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


BOOKING_TYPES = ("property_viewing", "consultation", "tour")
BLOCK_TYPES = ("vacation", "meeting", "personal", "training")
RECURRING_PATTERNS = ("daily", "weekly", "monthly")
VIEWING_STATUSES = ("scheduled", "confirmed", "completed", "cancelled", "no_show")
ACTIVE_VIEWING_STATUSES = ("scheduled", "confirmed")


class Brokers(Base):
    __tablename__ = 'brokers'

    id = Column(Integer, primary_key=True)
    full_name = Column(Text, nullable=False)
    email = Column(Text)
    phone = Column(Text)
    timezone = Column(Text, nullable=False, server_default=text("'Africa/Cairo'"))
    is_active = Column(Boolean, nullable=False, server_default=text('1'))
    # bumped under lock by every schedule write for this broker
    schedule_version = Column(Integer, nullable=False, server_default=text('0'))
    created_at = Column(DateTime, server_default=func.current_timestamp())

    availability = relationship('BrokerAvailability', back_populates='broker')
    blocked_times = relationship('BrokerBlockedTimes', back_populates='broker')
    property_brokers = relationship('PropertyBrokers', back_populates='broker')
    viewings = relationship('PropertyViewings', back_populates='broker')


class PropertyBrokers(Base):
    __tablename__ = 'property_brokers'

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, nullable=False, index=True)
    broker_id = Column(ForeignKey('brokers.id', ondelete='CASCADE'), nullable=False)
    is_primary = Column(Boolean, nullable=False, server_default=text('0'))
    assignment_type = Column(
        Enum('listing', 'selling', 'showing', native_enum=False),
        nullable=False,
        server_default=text("'showing'"),
    )
    is_active = Column(Boolean, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, server_default=func.current_timestamp())

    broker = relationship('Brokers', back_populates='property_brokers')


class BrokerAvailability(Base):
    __tablename__ = 'broker_availability'
    __table_args__ = (
        CheckConstraint('current_bookings >= 0', name='ck_availability_bookings_floor'),
        CheckConstraint('current_bookings <= max_bookings', name='ck_availability_bookings_cap'),
        CheckConstraint('slot_duration_minutes > 0', name='ck_availability_slot_duration'),
        CheckConstraint('start_time < end_time', name='ck_availability_time_order'),
        Index('ix_broker_availability_broker_date', 'broker_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    broker_id = Column(ForeignKey('brokers.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Text, nullable=False)   # "HH:MM", broker local
    end_time = Column(Text, nullable=False)     # "HH:MM", broker local
    slot_duration_minutes = Column(Integer, nullable=False, server_default=text('60'))
    break_between_slots = Column(Integer, nullable=False, server_default=text('15'))
    max_bookings = Column(Integer, nullable=False, server_default=text('1'))
    current_bookings = Column(Integer, nullable=False, server_default=text('0'))
    booking_type = Column(
        Enum(*BOOKING_TYPES, native_enum=False),
        nullable=False,
        server_default=text("'property_viewing'"),
    )
    notes = Column(Text)
    is_available = Column(Boolean, nullable=False, server_default=text('1'))
    created_at = Column(DateTime, server_default=func.current_timestamp())
    updated_at = Column(DateTime, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    broker = relationship('Brokers', back_populates='availability')
    viewings = relationship('PropertyViewings', back_populates='availability')


class BrokerBlockedTimes(Base):
    __tablename__ = 'broker_blocked_times'
    __table_args__ = (
        CheckConstraint('end_datetime > start_datetime', name='ck_blocked_time_order'),
        Index('ix_broker_blocked_times_broker_start', 'broker_id', 'start_datetime'),
    )

    id = Column(Integer, primary_key=True)
    broker_id = Column(ForeignKey('brokers.id', ondelete='CASCADE'), nullable=False)
    # stored as naive UTC
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)
    reason = Column(Text, nullable=False, server_default=text("''"))
    block_type = Column(
        Enum(*BLOCK_TYPES, native_enum=False),
        nullable=False,
        server_default=text("'personal'"),
    )
    is_recurring = Column(Boolean, nullable=False, server_default=text('0'))
    recurring_pattern = Column(Enum(*RECURRING_PATTERNS, native_enum=False))
    recurring_until = Column(DateTime)
    # template a recurring instance was synthesized from
    parent_id = Column(ForeignKey('broker_blocked_times.id', ondelete='SET NULL'))
    created_by = Column(Text)
    created_at = Column(DateTime, server_default=func.current_timestamp())

    broker = relationship('Brokers', back_populates='blocked_times')


class PropertyViewings(Base):
    __tablename__ = 'property_viewings'
    __table_args__ = (
        Index('ix_property_viewings_broker_start', 'broker_id', 'start_datetime'),
    )

    id = Column(Integer, primary_key=True)
    property_id = Column(Integer, nullable=False, index=True)
    broker_id = Column(ForeignKey('brokers.id', ondelete='CASCADE'), nullable=False)
    availability_id = Column(ForeignKey('broker_availability.id', ondelete='SET NULL'))
    # stored as naive UTC
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    visitor_name = Column(Text)
    status = Column(
        Enum(*VIEWING_STATUSES, native_enum=False),
        nullable=False,
        server_default=text("'scheduled'"),
    )
    created_at = Column(DateTime, server_default=func.current_timestamp())

    broker = relationship('Brokers', back_populates='viewings')
    availability = relationship('BrokerAvailability', back_populates='viewings')
