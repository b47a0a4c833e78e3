"""Shared fixtures for leave engine tests."""

from datetime import date

import pytest

from wandergrid.config.settings import LeaveEngineSettings
from wandergrid.schemas.workspace import (
    Accrual,
    CarryOverRule,
    EntitlementType,
    HolidayWeekendRule,
    PublicHoliday,
    Trip,
    TripAllocation,
    User,
    UserPolicy,
    WorkspaceSnapshot,
)


# =============================================================================
# Test Data
# =============================================================================

ENTITLEMENTS = [
    EntitlementType(id="e1", name="Annual Leave", category="Annual"),
    EntitlementType(id="e2", name="Lieu Days", category="Lieu"),
    EntitlementType(id="e3", name="Sick Leave", category="Sick"),
]


@pytest.fixture
def engine_settings():
    """Default engine settings, independent of the environment."""
    return LeaveEngineSettings()


@pytest.fixture
def make_policy():
    """Factory for user policies."""

    def _make_policy(
        entitlement_id: str = "e1",
        year: int = 2024,
        amount: float = 20,
        carry_over: CarryOverRule = None,
        **kwargs,
    ) -> UserPolicy:
        return UserPolicy(
            entitlement_id=entitlement_id,
            year=year,
            accrual=Accrual(amount=amount),
            carry_over=carry_over or CarryOverRule(),
            **kwargs,
        )

    return _make_policy


@pytest.fixture
def make_user():
    """Factory for users; defaults to one 20-day annual policy for 2024."""

    def _make_user(user_id: str = "u1", policies=None, **kwargs) -> User:
        if policies is None:
            policies = [UserPolicy(entitlement_id="e1", year=2024, accrual=Accrual(amount=20))]
        return User(id=user_id, name=user_id.upper(), policies=policies, **kwargs)

    return _make_user


@pytest.fixture
def make_trip():
    """Factory for stored trips charged to one entitlement."""

    def _make_trip(
        trip_id: str,
        start: date,
        end: date,
        entitlement_id: str = "e1",
        user_id: str = "u1",
        allocations=None,
        **kwargs,
    ) -> Trip:
        return Trip(
            id=trip_id,
            name=f"Trip {trip_id}",
            start_date=start,
            end_date=end,
            participants=[user_id],
            entitlement_id=entitlement_id,
            allocations=[TripAllocation(**a) for a in allocations] if allocations else None,
            **kwargs,
        )

    return _make_trip


@pytest.fixture
def make_workspace():
    """Factory for workspace snapshots with the standard entitlement types."""

    def _make_workspace(users=(), trips=(), holidays=(), working_days=None) -> WorkspaceSnapshot:
        data = {
            "users": list(users),
            "entitlements": list(ENTITLEMENTS),
            "trips": list(trips),
            "holidays": list(holidays),
        }
        if working_days is not None:
            data["settings"] = {"working_days": working_days}
        return WorkspaceSnapshot(**data)

    return _make_workspace


@pytest.fixture
def make_holiday():
    """Factory for holidays in calendar c1."""

    def _make_holiday(day, name: str = "Founders Day", **kwargs) -> PublicHoliday:
        return PublicHoliday(
            id=f"h-{day}",
            name=name,
            date=day,
            config_id=kwargs.pop("config_id", "c1"),
            **kwargs,
        )

    return _make_holiday


@pytest.fixture
def holiday_user(make_user):
    """Factory for a user subscribed to calendar c1 under a weekend rule."""

    def _holiday_user(rule: HolidayWeekendRule, **kwargs) -> User:
        return make_user(holiday_config_ids=["c1"], holiday_weekend_rule=rule, **kwargs)

    return _holiday_user
