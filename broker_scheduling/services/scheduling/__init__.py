# broker_scheduling/services/scheduling/__init__.py
"""
Availability and slot scheduling engine.

Write side: BlockedPeriodManager, AvailabilityWindowStore, CapacityTracker
Read side:  generate_slots (pure), calculate_property_slots, build_broker_dashboard
"""

from .config import SchedulingConfig, get_scheduling_config
from .intervals import TimeInterval, contains, overlaps
from .generator import Slot, generate_slots
from .blocked_periods import BlockedPeriodCreation, BlockedPeriodManager, Recurrence
from .windows import AvailabilityWindowStore, WindowInput
from .capacity import CapacityTracker, Reservation
from .availability import calculate_property_slots
from .dashboard import build_broker_dashboard

__all__ = [
    "SchedulingConfig",
    "get_scheduling_config",
    "TimeInterval",
    "contains",
    "overlaps",
    "Slot",
    "generate_slots",
    "BlockedPeriodCreation",
    "BlockedPeriodManager",
    "Recurrence",
    "AvailabilityWindowStore",
    "WindowInput",
    "CapacityTracker",
    "Reservation",
    "calculate_property_slots",
    "build_broker_dashboard",
]
