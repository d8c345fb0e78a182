# broker_scheduling/schemas/blocked_periods.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ..services.scheduling.intervals import from_storage


class RecurrenceIn(BaseModel):
    pattern: str  # daily / weekly / monthly
    until: str  # ISO datetime with offset, or YYYY-MM-DD


class BlockedPeriodCreate(BaseModel):
    # parsed by the engine so format errors come back as invalid_time_format
    start_datetime: str
    end_datetime: str
    reason: str = ""
    block_type: str = "personal"
    recurrence: Optional[RecurrenceIn] = None
    created_by: Optional[str] = None

    model_config = {"from_attributes": True}


class BlockedPeriodRead(BaseModel):
    id: int
    broker_id: int

    start_datetime: datetime
    end_datetime: datetime

    reason: str
    block_type: str
    is_recurring: bool
    recurring_pattern: Optional[str] = None
    recurring_until: Optional[datetime] = None
    parent_id: Optional[int] = None
    created_by: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("start_datetime", "end_datetime", "recurring_until")
    @classmethod
    def attach_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Stored values are naive UTC; expose them with an explicit offset."""
        return from_storage(v) if v is not None else None


class RecurringFailure(BaseModel):
    start_datetime: str
    end_datetime: str
    error: str
    conflicts: list[dict] = []


class BlockedPeriodCreateResponse(BaseModel):
    blockedTime: BlockedPeriodRead
    recurringInstances: list[BlockedPeriodRead] = []
    recurringFailures: list[RecurringFailure] = []
    recurrenceTruncated: bool = False


class BlockedPeriodListResponse(BaseModel):
    broker_id: int
    blockedTimes: list[BlockedPeriodRead]
