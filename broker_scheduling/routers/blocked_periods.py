# broker_scheduling/routers/blocked_periods.py
# Blocked periods are immutable: PATCH = 405, DELETE = ALLOWED (hard)

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.blocked_periods import (
    BlockedPeriodCreate,
    BlockedPeriodCreateResponse,
    BlockedPeriodListResponse,
    BlockedPeriodRead,
)
from ..services.scheduling import BlockedPeriodManager, Recurrence

router = APIRouter(tags=["blocked_times"])


@router.get(
    "/brokers/{broker_id}/blocked-times",
    response_model=BlockedPeriodListResponse,
)
def list_blocked_times(
    broker_id: int,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Blocked periods intersecting the range (default: next 90 days)."""
    periods = BlockedPeriodManager(db).list_periods(broker_id, start_date, end_date)
    return BlockedPeriodListResponse(
        broker_id=broker_id,
        blockedTimes=[BlockedPeriodRead.model_validate(p) for p in periods],
    )


@router.post(
    "/brokers/{broker_id}/blocked-times",
    response_model=BlockedPeriodCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_blocked_time(
    broker_id: int,
    data: BlockedPeriodCreate,
    db: Session = Depends(get_db),
):
    """Create a blocked period; 409 with the conflicting periods on overlap."""
    recurrence = None
    if data.recurrence is not None:
        recurrence = Recurrence(pattern=data.recurrence.pattern, until=data.recurrence.until)

    result = BlockedPeriodManager(db).create(
        broker_id,
        data.start_datetime,
        data.end_datetime,
        reason=data.reason,
        block_type=data.block_type,
        recurrence=recurrence,
        created_by=data.created_by,
    )
    return BlockedPeriodCreateResponse(
        blockedTime=BlockedPeriodRead.model_validate(result.blocked_period),
        recurringInstances=[BlockedPeriodRead.model_validate(i) for i in result.instances],
        recurringFailures=result.failures,
        recurrenceTruncated=result.truncated,
    )


@router.get("/blocked-times/{id}", response_model=BlockedPeriodRead)
def get_blocked_time(id: int, db: Session = Depends(get_db)):
    return BlockedPeriodManager(db).get(id)


@router.patch("/blocked-times/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Blocked periods are immutable; delete and recreate",
    )


@router.delete("/blocked-times/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_time(id: int, db: Session = Depends(get_db)):
    BlockedPeriodManager(db).delete(id)
