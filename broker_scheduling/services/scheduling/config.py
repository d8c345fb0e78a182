# broker_scheduling/services/scheduling/config.py
"""
Scheduling configuration and "HH:MM" helpers.
"""

from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class SchedulingConfig:
    """
    Configuration for the availability / slot engine.

    Attributes:
        horizon_days: How many days ahead slots can be queried
        availability_default_days: Default range for window listings
        blocked_period_default_days: Default range for blocked-time listings
        max_recurring_instances: Upper bound on instances one template may synthesize
        dashboard_upcoming_days: Upcoming viewings horizon on the dashboard
        dashboard_recent_days: Look-back for recent viewings
        dashboard_recent_limit: Max recent viewings returned
        dashboard_availability_days: Horizon for the availability summary
        dashboard_workers: Thread pool size for parallel dashboard sections
    """
    horizon_days: int = 90
    availability_default_days: int = 30
    blocked_period_default_days: int = 90
    max_recurring_instances: int = 366
    dashboard_upcoming_days: int = 30
    dashboard_recent_days: int = 30
    dashboard_recent_limit: int = 10
    dashboard_availability_days: int = 7
    dashboard_workers: int = 4

    def __post_init__(self):
        """Validate configuration."""
        if not 1 <= self.horizon_days <= 90:
            raise ValueError(f"horizon_days must be between 1 and 90, got {self.horizon_days}")
        if self.max_recurring_instances < 1:
            raise ValueError(
                f"max_recurring_instances must be >= 1, got {self.max_recurring_instances}"
            )
        if self.dashboard_workers < 1:
            raise ValueError(f"dashboard_workers must be >= 1, got {self.dashboard_workers}")


@lru_cache
def get_scheduling_config() -> SchedulingConfig:
    """Get scheduling configuration (singleton)."""
    return SchedulingConfig()


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)
