# broker_scheduling/services/scheduling/storage.py
"""
Translate SQLAlchemy failures into the engine's retryable StorageError.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def storage_guard(db: Session, action: str):
    """
    Roll back and raise StorageError on any database failure.

    Domain errors raised inside the block roll back too and propagate
    unchanged.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Storage failure while {action}")
        raise StorageError(f"Storage failure while {action}") from e
    except Exception:
        db.rollback()
        raise
