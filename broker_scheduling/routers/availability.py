# broker_scheduling/routers/availability.py

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.availability import (
    AvailabilityDayUpdate,
    AvailabilityListResponse,
    AvailabilityWindowPatch,
    AvailabilityWindowRead,
)
from ..services.scheduling import AvailabilityWindowStore, WindowInput

router = APIRouter(tags=["availability"])


@router.get(
    "/brokers/{broker_id}/availability",
    response_model=AvailabilityListResponse,
)
def list_availability(
    broker_id: int,
    date: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Windows for one date, a range, or the next 30 days."""
    store = AvailabilityWindowStore(db)
    if date:
        windows = store.list_for_range(broker_id, date, date)
    else:
        windows = store.list_for_range(broker_id, start_date, end_date)
    return AvailabilityListResponse(
        broker_id=broker_id,
        availability=[AvailabilityWindowRead.model_validate(w) for w in windows],
    )


@router.put(
    "/brokers/{broker_id}/availability/{date}",
    response_model=list[AvailabilityWindowRead],
)
def replace_availability(
    broker_id: int,
    date: str,
    data: AvailabilityDayUpdate,
    db: Session = Depends(get_db),
):
    """Replace all windows of the broker on `date` (YYYY-MM-DD)."""
    windows = [WindowInput(**w.model_dump()) for w in data.windows]
    return AvailabilityWindowStore(db).upsert_for_date(broker_id, date, windows)


@router.get("/availability/{id}", response_model=AvailabilityWindowRead)
def get_availability(id: int, db: Session = Depends(get_db)):
    return AvailabilityWindowStore(db).get(id)


@router.patch("/availability/{id}", response_model=AvailabilityWindowRead)
def patch_availability(
    id: int,
    data: AvailabilityWindowPatch,
    db: Session = Depends(get_db),
):
    """Only the is_available flag can change in place."""
    return AvailabilityWindowStore(db).set_available(id, data.is_available)


@router.delete("/availability/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(id: int, db: Session = Depends(get_db)):
    AvailabilityWindowStore(db).delete(id)
