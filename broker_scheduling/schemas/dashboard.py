# broker_scheduling/schemas/dashboard.py

from pydantic import BaseModel

from .slots import BrokerInfo


class DashboardStats(BaseModel):
    total_viewings: int = 0
    viewings_this_week: int = 0
    viewings_this_month: int = 0
    total_properties: int = 0


class AvailabilitySummary(BaseModel):
    totalSlots: int = 0
    availableSlots: int = 0
    bookedSlots: int = 0
    daysWithAvailability: int = 0


class DashboardResponse(BaseModel):
    broker: BrokerInfo
    stats: DashboardStats
    upcomingViewings: list[dict]
    recentViewings: list[dict]
    availability: list[dict]
    availabilitySummary: AvailabilitySummary
    blockedTimes: list[dict]
    propertyAssignments: list[dict]

    # per-section "ok" / "failed"
    sections: dict[str, str]
    failedSections: list[str] = []
