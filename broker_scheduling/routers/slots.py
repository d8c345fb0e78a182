# broker_scheduling/routers/slots.py
"""
Slots API endpoints.

GET /properties/{property_id}/available-slots - per-broker viewing slots for a day
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.slots import AvailableSlotsResponse
from ..services.scheduling import calculate_property_slots, get_scheduling_config

router = APIRouter(tags=["slots"])


@router.get(
    "/properties/{property_id}/available-slots",
    response_model=AvailableSlotsResponse,
)
def get_available_slots(
    property_id: int,
    target_date: str = Query(..., alias="date"),
    broker_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Available viewing slots of every active broker assigned to the property."""
    result = calculate_property_slots(
        db=db,
        property_id=property_id,
        target_date=target_date,
        broker_id=broker_id,
        config=get_scheduling_config(),
    )
    return AvailableSlotsResponse(**result)
