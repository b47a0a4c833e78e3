"""Pydantic models for the workspace records consumed by the leave engine.

These mirror the documents stored by the CRUD backend. Field names are
snake_case in Python; the camelCase keys written by the front end are accepted
on input and used on output.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================

class HolidayWeekendRule(str, Enum):
    """How a public holiday falling on a weekend is compensated."""

    MONDAY = "monday"
    LIEU = "lieu"
    NONE = "none"


class AccrualPeriod(str, Enum):
    """How often a policy grants its accrual amount."""

    LUMP_SUM = "lump_sum"
    YEARLY = "yearly"
    MONTHLY = "monthly"


class CarryOverExpiryType(str, Enum):
    """When carried-over days stop being usable."""

    NONE = "none"
    MONTHS = "months"
    FIXED_DATE = "fixed_date"


class TripStatus(str, Enum):
    """Lifecycle status of a trip. Planning trips do not consume allowance."""

    UPCOMING = "Upcoming"
    PAST = "Past"
    PLANNING = "Planning"


class DurationMode(str, Enum):
    """How much of each requested day is taken off."""

    ALL_FULL = "all_full"
    ALL_AM = "all_am"
    ALL_PM = "all_pm"
    SINGLE_AM = "single_am"
    SINGLE_PM = "single_pm"
    CUSTOM = "custom"


class StartPortion(str, Enum):
    """Portion of the first day taken off in custom mode."""

    FULL = "full"
    PM = "pm"


class EndPortion(str, Enum):
    """Portion of the last day taken off in custom mode."""

    FULL = "full"
    AM = "am"


HALF_DAY_MODES = frozenset({
    DurationMode.ALL_AM,
    DurationMode.ALL_PM,
    DurationMode.SINGLE_AM,
    DurationMode.SINGLE_PM,
})

SINGLE_DAY_MODES = frozenset({DurationMode.SINGLE_AM, DurationMode.SINGLE_PM})

COUNTED_TRIP_STATUSES = frozenset({TripStatus.UPCOMING, TripStatus.PAST})

# Alias for models that have a field named "date"
CalendarDate = date


# =============================================================================
# Date Coercion
# =============================================================================

def parse_lenient_date(value: Any) -> Optional[date]:
    """
    Parse a stored date value, returning None when it cannot be read.

    Stored records come from a schemaless document store, so a malformed
    date must degrade to "missing" instead of rejecting the whole record.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _empty_if_none(value: Any) -> Any:
    return "" if value is None else value


def _non_negative(value: Any) -> Any:
    """Missing or negative day counts read as zero."""
    if value is None:
        return 0
    if isinstance(value, (int, float)) and value < 0:
        return 0
    return value


# =============================================================================
# Base Model
# =============================================================================

class WorkspaceModel(BaseModel):
    """Base for records exchanged with the front end in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Entitlements and Policies
# =============================================================================

class Accrual(WorkspaceModel):
    """Days granted by a policy."""

    period: AccrualPeriod = Field(default=AccrualPeriod.YEARLY)
    amount: float = Field(default=0, description="Base days granted")

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return 0 if v is None else v


class CarryOverRule(WorkspaceModel):
    """How unused days roll into the following year."""

    enabled: bool = False
    max_days: float = Field(default=0, ge=0)
    target_entitlement_id: Optional[str] = Field(
        default=None,
        description="Entitlement receiving the carried days; unset means the policy's own",
    )
    expiry_type: CarryOverExpiryType = CarryOverExpiryType.NONE
    expiry_value: Optional[Union[int, str]] = Field(
        default=None,
        description="Months after 1 January, or an MM-DD date",
    )

    @field_validator("max_days", mode="before")
    @classmethod
    def clamp_max_days(cls, v: Any) -> Any:
        return _non_negative(v)


class UserPolicy(WorkspaceModel):
    """A user's grant for one entitlement in one year."""

    entitlement_id: str
    year: int
    is_active: bool = True
    is_unlimited: bool = False
    accrual: Accrual = Field(default_factory=Accrual)
    carry_over: CarryOverRule = Field(default_factory=CarryOverRule)

    @property
    def carry_over_target(self) -> str:
        """Entitlement that receives this policy's carry-over."""
        return self.carry_over.target_entitlement_id or self.entitlement_id


class EntitlementType(WorkspaceModel):
    """A named leave category such as Annual Leave or Lieu Days."""

    id: str
    name: str = ""
    category: str = ""
    color: Optional[str] = None
    is_unlimited: bool = False

    @field_validator("name", "category", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _empty_if_none(v)


# =============================================================================
# Users and Holidays
# =============================================================================

class User(WorkspaceModel):
    """A workspace member whose leave is tracked."""

    id: str
    name: str = ""
    lieu_balance: float = 0
    policies: List[UserPolicy] = Field(default_factory=list)
    holiday_config_ids: List[str] = Field(default_factory=list)
    holiday_weekend_rule: Optional[HolidayWeekendRule] = None

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Any:
        return _empty_if_none(v)

    def find_policy(self, entitlement_id: str, year: int) -> Optional[UserPolicy]:
        """Return the first policy for the entitlement and year, if any."""
        for policy in self.policies:
            if policy.entitlement_id == entitlement_id and policy.year == year:
                return policy
        return None


class PublicHoliday(WorkspaceModel):
    """A holiday belonging to one saved holiday calendar."""

    id: Optional[str] = None
    name: str = ""
    date: Optional[CalendarDate] = None
    country_code: Optional[str] = None
    config_id: Optional[str] = None
    is_included: bool = True
    is_weekend: Optional[bool] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[CalendarDate]:
        return parse_lenient_date(v)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Any:
        return _empty_if_none(v)


# =============================================================================
# Trips
# =============================================================================

class TripAllocation(WorkspaceModel):
    """Days of a trip charged to one entitlement, optionally for one year."""

    entitlement_id: str
    days: float = 0
    target_year: Optional[int] = None


class Trip(WorkspaceModel):
    """A trip or time-off request."""

    id: Optional[str] = None
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: str = ""
    status: TripStatus = TripStatus.UPCOMING
    participants: List[str] = Field(default_factory=list)
    icon: Optional[str] = None
    duration_mode: Optional[DurationMode] = None
    start_portion: Optional[StartPortion] = None
    end_portion: Optional[EndPortion] = None
    entitlement_id: Optional[str] = None
    allocations: Optional[List[TripAllocation]] = None
    excluded_dates: List[date] = Field(default_factory=list)

    @field_validator("name", "location", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _empty_if_none(v)

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
        return [d for d in parsed if d is not None]


# =============================================================================
# Workspace
# =============================================================================

class WorkspaceSettings(WorkspaceModel):
    """Workspace-wide configuration relevant to leave computation."""

    working_days: List[int] = Field(
        default_factory=lambda: [1, 2, 3, 4, 5],
        description="Working weekdays, 0=Sunday ... 6=Saturday",
    )
    currency: str = "USD"


class WorkspaceSnapshot(WorkspaceModel):
    """Everything the leave engine reads, supplied by the caller."""

    users: List[User] = Field(default_factory=list)
    entitlements: List[EntitlementType] = Field(default_factory=list)
    trips: List[Trip] = Field(default_factory=list)
    holidays: List[PublicHoliday] = Field(default_factory=list)
    settings: WorkspaceSettings = Field(default_factory=WorkspaceSettings)

    def get_user(self, user_id: Optional[str]) -> Optional[User]:
        """Look up a user by id."""
        if not user_id:
            return None
        return next((u for u in self.users if u.id == user_id), None)

    def get_entitlement(self, entitlement_id: Optional[str]) -> Optional[EntitlementType]:
        """Look up an entitlement type by id."""
        if not entitlement_id:
            return None
        return next((e for e in self.entitlements if e.id == entitlement_id), None)
