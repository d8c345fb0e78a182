import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .errors import SchedulingError, StorageError
from .routers import availability, blocked_periods, dashboard, slots, viewings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Broker Scheduling API")

app.include_router(slots.router)
app.include_router(availability.router)
app.include_router(blocked_periods.router)
app.include_router(viewings.router)
app.include_router(dashboard.router)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_detail())


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.exception("Health check: database unreachable")
        raise StorageError("Database unreachable") from e
    return {"status": "ok", "database": "ok"}
