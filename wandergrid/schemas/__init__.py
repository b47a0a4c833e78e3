"""Pydantic schemas for workspace records and leave requests."""

from wandergrid.schemas.workspace import (
    EntitlementType,
    PublicHoliday,
    Trip,
    TripAllocation,
    User,
    UserPolicy,
    WorkspaceSnapshot,
)
from wandergrid.schemas.leave_request import (
    CrossYearConfig,
    DayBreakdown,
    DeductionSummary,
    EntitlementStats,
    LeaveRequestForm,
    SelectionMode,
)

__all__ = [
    # Workspace records
    "EntitlementType",
    "PublicHoliday",
    "Trip",
    "TripAllocation",
    "User",
    "UserPolicy",
    "WorkspaceSnapshot",
    # Leave requests
    "CrossYearConfig",
    "DayBreakdown",
    "DeductionSummary",
    "EntitlementStats",
    "LeaveRequestForm",
    "SelectionMode",
]
