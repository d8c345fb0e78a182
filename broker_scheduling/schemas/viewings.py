# broker_scheduling/schemas/viewings.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..services.scheduling.intervals import from_storage


class ViewingCreate(BaseModel):
    availability_id: int
    property_id: int
    time: str = Field(description="Slot start HH:MM in the broker's timezone")
    visitor_name: Optional[str] = None


class ViewingRead(BaseModel):
    id: int
    property_id: int
    broker_id: int
    availability_id: Optional[int] = None
    start_datetime: datetime
    end_datetime: datetime
    duration_minutes: int
    visitor_name: Optional[str] = None
    status: str

    model_config = {"from_attributes": True}

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def attach_utc(cls, v: datetime) -> datetime:
        return from_storage(v)
