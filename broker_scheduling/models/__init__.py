from .scheduling import (
    ACTIVE_VIEWING_STATUSES,
    BLOCK_TYPES,
    BOOKING_TYPES,
    RECURRING_PATTERNS,
    VIEWING_STATUSES,
    Base,
    BrokerAvailability,
    BrokerBlockedTimes,
    Brokers,
    PropertyBrokers,
    PropertyViewings,
    metadata,
)

__all__ = [
    "ACTIVE_VIEWING_STATUSES",
    "BLOCK_TYPES",
    "BOOKING_TYPES",
    "RECURRING_PATTERNS",
    "VIEWING_STATUSES",
    "Base",
    "BrokerAvailability",
    "BrokerBlockedTimes",
    "Brokers",
    "PropertyBrokers",
    "PropertyViewings",
    "metadata",
]
