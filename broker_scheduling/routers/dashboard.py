# broker_scheduling/routers/dashboard.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import sessionmaker

from ..database import get_session_factory
from ..schemas.dashboard import DashboardResponse
from ..services.scheduling import build_broker_dashboard

router = APIRouter(tags=["dashboard"])


@router.get("/brokers/{broker_id}/dashboard", response_model=DashboardResponse)
def get_dashboard(
    broker_id: int,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Read-only broker overview; failed sections come back empty and are listed."""
    return DashboardResponse(**build_broker_dashboard(session_factory, broker_id))
