# broker_scheduling/schemas/availability.py

from datetime import date
from typing import Optional

from pydantic import BaseModel


class AvailabilityWindowIn(BaseModel):
    start_time: str  # "HH:MM"
    end_time: str    # "HH:MM"
    slot_duration_minutes: int = 60
    break_between_slots: int = 15
    max_bookings: int = 1
    booking_type: str = "property_viewing"
    notes: Optional[str] = None


class AvailabilityDayUpdate(BaseModel):
    """Replaces every window of the broker on the date."""
    windows: list[AvailabilityWindowIn]


class AvailabilityWindowPatch(BaseModel):
    is_available: bool


class AvailabilityWindowRead(BaseModel):
    id: int
    broker_id: int
    date: date
    start_time: str
    end_time: str
    slot_duration_minutes: int
    break_between_slots: int
    max_bookings: int
    current_bookings: int
    booking_type: str
    notes: Optional[str] = None
    is_available: bool

    model_config = {"from_attributes": True}


class AvailabilityListResponse(BaseModel):
    broker_id: int
    availability: list[AvailabilityWindowRead]
