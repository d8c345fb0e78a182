# broker_scheduling/schemas/slots.py
"""
Pydantic schemas for the slots API.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    """A single bookable slot."""
    time: str = Field(description="Start time HH:MM in the broker's timezone")
    start_datetime: str
    end_datetime: str
    available: bool
    maxBookings: int
    currentBookings: int
    capacityRemaining: int
    broker_id: int
    availability_id: int
    duration_minutes: int
    booking_type: str
    notes: Optional[str] = None
    hasConflict: bool = False
    conflictReason: Optional[str] = None


class BrokerInfo(BaseModel):
    id: int
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    timezone: str


class BrokerSlots(BaseModel):
    broker_id: int
    broker: BrokerInfo
    is_primary: bool
    slots: list[SlotInfo]


class AvailableSlotsResponse(BaseModel):
    """Per-broker slots for a property on a date."""
    property_id: int
    date: str
    slots: list[BrokerSlots]
