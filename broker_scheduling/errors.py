# broker_scheduling/errors.py
"""
Error taxonomy for the scheduling engine.

Every error carries an HTTP status and a structured detail payload so a
rejected write tells the caller exactly what to correct:

    ValidationError      400  invalid field (field, index)
      InvalidTimeFormat  400  malformed / ambiguous datetime
      InvalidRange       400  end <= start, or start in the past
    ConflictError        409  overlapping blocked period (conflicts)
    CapacityExceeded     409  window is full (max/current bookings)
    NotFound             404  unknown broker / window / period
    StorageError         503  transient infrastructure failure, retryable
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all engine errors."""

    status_code = 500
    code = "scheduling_error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> dict[str, Any]:
        return {}

    def to_detail(self) -> dict[str, Any]:
        detail = {"error": self.code, "detail": self.message}
        detail.update(self.extra())
        return detail


class ValidationError(SchedulingError):
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.index = index

    def extra(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.field is not None:
            data["field"] = self.field
        if self.index is not None:
            data["index"] = self.index
        return data


class InvalidTimeFormat(ValidationError):
    code = "invalid_time_format"


class InvalidRange(ValidationError):
    code = "invalid_range"


class ConflictError(SchedulingError):
    status_code = 409
    code = "conflict"

    def __init__(self, message: str, conflicts: Optional[list[dict]] = None):
        super().__init__(message)
        self.conflicts = conflicts or []

    def extra(self) -> dict[str, Any]:
        return {"conflicts": self.conflicts}


class CapacityExceeded(SchedulingError):
    status_code = 409
    code = "capacity_exceeded"

    def __init__(self, window_id: int, max_bookings: int, current_bookings: int):
        super().__init__(
            f"Availability window {window_id} is full "
            f"({current_bookings}/{max_bookings} bookings)"
        )
        self.window_id = window_id
        self.max_bookings = max_bookings
        self.current_bookings = current_bookings

    def extra(self) -> dict[str, Any]:
        return {
            "availability_id": self.window_id,
            "maxBookings": self.max_bookings,
            "currentBookings": self.current_bookings,
            "capacityRemaining": max(0, self.max_bookings - self.current_bookings),
        }


class NotFound(SchedulingError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id

    def extra(self) -> dict[str, Any]:
        return {"entity": self.entity, "entity_id": self.entity_id}


class StorageError(SchedulingError):
    status_code = 503
    code = "storage_error"
    retryable = True

    def extra(self) -> dict[str, Any]:
        return {"retryable": True}
