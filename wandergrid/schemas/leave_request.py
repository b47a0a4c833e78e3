"""Pydantic models for leave request editing and balance display.

The request form mirrors what the leave request editor holds while a user
edits a trip: dates, duration mode, the entitlement selection (single,
multi-category split, or cross-year split) and the per-date exceptions.
"""

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from wandergrid.schemas.workspace import (
    CalendarDate,
    DurationMode,
    EndPortion,
    StartPortion,
    TripAllocation,
    WorkspaceModel,
    parse_lenient_date,
)


DEFAULT_ICON = "✈️"


# =============================================================================
# Enums
# =============================================================================

class SelectionMode(str, Enum):
    """Which allocation strategy a request uses. Exactly one is active."""

    SINGLE = "single"
    MULTI_CATEGORY = "multi_category"
    CROSS_YEAR = "cross_year"


# =============================================================================
# Request Form
# =============================================================================

class CrossYearConfig(WorkspaceModel):
    """Per-year allocation of a request spanning two calendar years."""

    year1: int
    days1: float = 0
    entitlement1: str
    year2: int
    days2: float = 0
    entitlement2: str


class LeaveRequestForm(WorkspaceModel):
    """Editable state of a leave request."""

    id: Optional[str] = None
    user_id: str = ""
    entitlement_id: str = ""
    reason: str = ""
    location: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    mode: DurationMode = DurationMode.ALL_FULL
    start_portion: StartPortion = StartPortion.FULL
    end_portion: EndPortion = EndPortion.FULL
    icon: str = DEFAULT_ICON
    allocations: List[TripAllocation] = Field(default_factory=list)
    use_multi_category: bool = False
    cross_year_mode: bool = False
    cross_year_config: Optional[CrossYearConfig] = None
    is_travel: bool = False
    excluded_dates: List[date] = Field(default_factory=list)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> Optional[date]:
        return parse_lenient_date(v)

    @field_validator("excluded_dates", mode="before")
    @classmethod
    def drop_unreadable_dates(cls, v: Any) -> List[date]:
        if not v:
            return []
        parsed = (parse_lenient_date(item) for item in v)
        return sorted({d for d in parsed if d is not None})

    @property
    def selection_mode(self) -> SelectionMode:
        """Active allocation strategy."""
        if self.cross_year_mode and self.cross_year_config is not None:
            return SelectionMode.CROSS_YEAR
        if self.use_multi_category:
            return SelectionMode.MULTI_CATEGORY
        return SelectionMode.SINGLE

    @property
    def effective_end_date(self) -> Optional[date]:
        """End date, falling back to the start date for open-ended input."""
        return self.end_date or self.start_date


# =============================================================================
# Day Breakdown
# =============================================================================

class DayBreakdown(WorkspaceModel):
    """Weight and classification of one calendar day of a request."""

    date: CalendarDate
    year: int
    weight: float
    is_weekend: bool
    is_holiday: bool
    holiday_name: Optional[str] = None
    day_name: str
    day_number: int


class DeductionSummary(WorkspaceModel):
    """Deduction totals over the active days of a breakdown."""

    total: float = 0
    by_year: Dict[int, float] = Field(default_factory=dict)

    def for_year(self, year: int) -> float:
        return self.by_year.get(year, 0.0)


# =============================================================================
# Balances
# =============================================================================

class EntitlementBreakdown(WorkspaceModel):
    """Components making up an entitlement's allowance."""

    base: float = 0
    carry_over: float = 0
    lieu: float = 0
    expiry_label: str = ""


class EntitlementStats(WorkspaceModel):
    """Allowance and usage of one entitlement for one user and year."""

    entitlement_id: str
    name: str = "Unknown"
    category: Optional[str] = None
    year: int
    used: float = 0
    allowance: Optional[float] = Field(
        default=0,
        description="Total allowance; null when unlimited",
    )
    remaining: Optional[float] = Field(
        default=0,
        description="Allowance left after usage; null when unlimited",
    )
    is_unlimited: bool = False
    breakdown: EntitlementBreakdown = Field(default_factory=EntitlementBreakdown)


class ExpirySuggestion(WorkspaceModel):
    """Hint that carried-over days in another entitlement expire soon."""

    entitlement_id: str
    name: str
    expiry_date: date
    balance: Optional[float] = Field(
        default=None,
        description="Remaining balance; null when unlimited",
    )
    is_unlimited: bool = False


class AllocationBalance(WorkspaceModel):
    """Days requested from one entitlement/year against what is left."""

    entitlement_id: str
    year: int
    days: float
    remaining: Optional[float] = Field(
        default=None,
        description="Remaining balance; null when unlimited",
    )
    is_unlimited: bool = False
    exceeds: bool = False
