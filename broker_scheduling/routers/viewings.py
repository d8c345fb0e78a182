# broker_scheduling/routers/viewings.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.viewings import ViewingCreate, ViewingRead
from ..services.viewings import book_viewing, cancel_viewing

router = APIRouter(prefix="/viewings", tags=["viewings"])


@router.post("/", response_model=ViewingRead, status_code=status.HTTP_201_CREATED)
def create_viewing(data: ViewingCreate, db: Session = Depends(get_db)):
    """Book a slot; 409 capacity_exceeded when the window is full."""
    return book_viewing(
        db,
        availability_id=data.availability_id,
        property_id=data.property_id,
        time=data.time,
        visitor_name=data.visitor_name,
    )


@router.post("/{id}/cancel", response_model=ViewingRead)
def cancel(id: int, db: Session = Depends(get_db)):
    return cancel_viewing(db, id)
