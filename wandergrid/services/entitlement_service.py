"""Entitlement resolution: allowances, carry-over and remaining balances."""

import logging
import math
from datetime import date
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from wandergrid.config.settings import LeaveEngineSettings, get_settings
from wandergrid.schemas.leave_request import (
    EntitlementBreakdown,
    EntitlementStats,
    ExpirySuggestion,
)
from wandergrid.schemas.workspace import (
    CarryOverExpiryType,
    EntitlementType,
    HolidayWeekendRule,
    User,
    UserPolicy,
    WorkspaceSnapshot,
)
from wandergrid.services.day_weight_service import DayWeightService, is_calendar_weekend
from wandergrid.services.usage_service import UsageService

logger = logging.getLogger(__name__)


UNLIMITED = math.inf


def is_unlimited(value: float) -> bool:
    """Whether an allowance or balance is the unlimited sentinel."""
    return math.isinf(value)


# =============================================================================
# Carry-Over Expiry
# =============================================================================

def get_carry_over_expiry(policy: UserPolicy, target_year: int) -> Optional[date]:
    """
    Date after which days carried from a policy into target_year expire.

    Fixed dates are "MM-DD" in the target year; month counts run from
    1 January of the target year. Returns None when nothing expires or the
    configured value cannot be read.
    """
    rule = policy.carry_over
    if not rule.expiry_value:
        return None

    if rule.expiry_type == CarryOverExpiryType.FIXED_DATE:
        try:
            month, day = (int(part) for part in str(rule.expiry_value).split("-"))
            return date(target_year, month, day)
        except (TypeError, ValueError):
            logger.warning(f"Unreadable carry-over expiry date {rule.expiry_value!r}")
            return None

    if rule.expiry_type == CarryOverExpiryType.MONTHS:
        try:
            months = int(rule.expiry_value)
        except (TypeError, ValueError):
            logger.warning(f"Unreadable carry-over expiry months {rule.expiry_value!r}")
            return None
        return date(target_year, 1, 1) + relativedelta(months=months)

    return None


def is_carry_over_expiring(policy: UserPolicy, target_year: int, trip_start: date) -> bool:
    """Whether a trip starting on trip_start can still use the carried days."""
    expiry = get_carry_over_expiry(policy, target_year)
    return expiry is not None and trip_start <= expiry


def get_expiry_label(policy: UserPolicy) -> str:
    """Human readable description of a carry-over expiry rule."""
    rule = policy.carry_over
    if rule.expiry_type == CarryOverExpiryType.MONTHS:
        return f"Expires after {rule.expiry_value} months"
    if rule.expiry_type == CarryOverExpiryType.FIXED_DATE:
        return f"Expires on {rule.expiry_value}"
    return ""


# =============================================================================
# Entitlement Service
# =============================================================================

class EntitlementService:
    """
    Resolves how many days a user may take from an entitlement in a year.

    Allowance is the policy's base accrual (or the lieu balance plus weekend
    holidays earned, for the lieu category) plus days carried over from the
    previous year. Carry-over resolution recurses into earlier years and is
    cut off at the configured depth, so cyclic carry-over targets terminate.
    """

    def __init__(
        self,
        workspace: WorkspaceSnapshot,
        exclude_trip_id: Optional[str] = None,
        settings: Optional[LeaveEngineSettings] = None,
        usage: Optional[UsageService] = None,
    ):
        """
        Initialize with the workspace snapshot.

        Args:
            workspace: Records to resolve against
            exclude_trip_id: Trip being edited, left out of usage
            settings: Engine settings (defaults to application settings)
            usage: Shared usage service for the same workspace
        """
        self.workspace = workspace
        self.settings = settings or get_settings().leave
        self.usage = usage or UsageService(
            workspace,
            exclude_trip_id=exclude_trip_id,
            settings=self.settings,
            day_weights=DayWeightService(workspace, self.settings),
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def is_lieu_entitlement(self, entitlement: EntitlementType) -> bool:
        return (
            entitlement.id == self.settings.lieu_entitlement_id
            or entitlement.category == self.settings.lieu_category
        )

    def get_user_entitlements(self, user_id: str) -> List[EntitlementType]:
        """Entitlement types the user holds at least one policy for."""
        user = self.workspace.get_user(user_id)
        if user is None:
            return []
        held = {policy.entitlement_id for policy in user.policies}
        return [ent for ent in self.workspace.entitlements if ent.id in held]

    def count_lieu_days_earned(self, user: User, year: int) -> int:
        """Included holidays of the user's calendars falling on a weekend in a year."""
        if user.holiday_weekend_rule != HolidayWeekendRule.LIEU:
            return 0

        config_ids = set(user.holiday_config_ids)
        earned = 0
        for holiday in self.workspace.holidays:
            if not holiday.is_included or holiday.config_id not in config_ids:
                continue
            if holiday.date is None or holiday.date.year != year:
                continue
            if holiday.is_weekend is not None:
                on_weekend = holiday.is_weekend
            else:
                on_weekend = is_calendar_weekend(holiday.date)
            if on_weekend:
                earned += 1
        return earned

    # =========================================================================
    # Allowance
    # =========================================================================

    def get_base_allowance(self, user_id: str, entitlement_id: str, year: int) -> float:
        """Allowance granted for the year before any carry-over."""
        if entitlement_id == self.settings.no_impact_key:
            return UNLIMITED

        user = self.workspace.get_user(user_id)
        entitlement = self.workspace.get_entitlement(entitlement_id)
        if user is None or entitlement is None:
            return 0.0

        if self.is_lieu_entitlement(entitlement):
            return (user.lieu_balance or 0) + self.count_lieu_days_earned(user, year)

        policy = user.find_policy(entitlement_id, year)
        if policy is not None and policy.is_active:
            if policy.is_unlimited:
                return UNLIMITED
            return policy.accrual.amount

        return UNLIMITED if entitlement.is_unlimited else 0.0

    def get_carry_over_amount(
        self,
        user_id: str,
        entitlement_id: str,
        year: int,
        depth: int = 0,
    ) -> float:
        """
        Days carried into an entitlement from every qualifying policy of the
        previous year.

        A previous-year policy contributes when it carries into itself and
        is for this entitlement, or explicitly targets this entitlement.
        Each contributes its unused remainder, capped at its max_days.
        """
        user = self.workspace.get_user(user_id)
        if user is None:
            return 0.0

        previous_year = year - 1
        carried_total = 0.0
        for source in user.policies:
            if source.year != previous_year or not source.carry_over.enabled:
                continue

            target = source.carry_over.target_entitlement_id
            targets_self = not target or target == source.entitlement_id
            if not ((targets_self and source.entitlement_id == entitlement_id) or target == entitlement_id):
                continue

            source_total = self.get_total_allowance(
                user_id, source.entitlement_id, previous_year, depth + 1
            )
            if is_unlimited(source_total):
                continue

            source_used = self.usage.get_used_days(user_id, source.entitlement_id, previous_year)
            remaining = max(0.0, source_total - source_used)
            carried_total += min(remaining, source.carry_over.max_days)

        return carried_total

    def get_total_allowance(
        self,
        user_id: str,
        entitlement_id: str,
        year: int,
        depth: int = 0,
    ) -> float:
        """Base allowance plus carry-over; UNLIMITED when uncapped."""
        if depth > self.settings.max_carry_over_depth:
            logger.debug(
                f"Carry-over chain for {entitlement_id} truncated at depth {depth} "
                f"(user {user_id}, year {year})"
            )
            return 0.0

        base = self.get_base_allowance(user_id, entitlement_id, year)
        if is_unlimited(base):
            return UNLIMITED

        user = self.workspace.get_user(user_id)
        policy = user.find_policy(entitlement_id, year) if user else None
        if policy is None or not policy.carry_over.enabled:
            return base

        return base + self.get_carry_over_amount(user_id, entitlement_id, year, depth)

    def get_remaining_balance(self, user_id: str, entitlement_id: str, year: int) -> float:
        """Allowance left after existing usage, never below zero."""
        if entitlement_id == self.settings.no_impact_key:
            return UNLIMITED

        total = self.get_total_allowance(user_id, entitlement_id, year)
        if is_unlimited(total):
            return UNLIMITED

        used = self.usage.get_used_days(user_id, entitlement_id, year)
        return max(0.0, total - used)

    # =========================================================================
    # Balance Display
    # =========================================================================

    def get_entitlement_stats(self, user_id: str, entitlement_id: str, year: int) -> EntitlementStats:
        """Allowance components and usage of one entitlement for display."""
        entitlement = self.workspace.get_entitlement(entitlement_id)
        stats = EntitlementStats(
            entitlement_id=entitlement_id,
            name=entitlement.name if entitlement else "Unknown",
            category=entitlement.category if entitlement else None,
            year=year,
            used=self.usage.get_used_days(user_id, entitlement_id, year),
        )

        total = self.get_total_allowance(user_id, entitlement_id, year)
        if is_unlimited(total):
            stats.allowance = None
            stats.remaining = None
            stats.is_unlimited = True
            return stats

        user = self.workspace.get_user(user_id)
        lieu = 0.0
        if user is not None and entitlement is not None and self.is_lieu_entitlement(entitlement):
            lieu = float(self.count_lieu_days_earned(user, year))
        base = self.get_base_allowance(user_id, entitlement_id, year)

        breakdown = EntitlementBreakdown(base=base - lieu, lieu=lieu, carry_over=total - base)

        policy = user.find_policy(entitlement_id, year) if user else None
        if policy is not None and policy.carry_over.enabled and user is not None:
            previous = next(
                (
                    p for p in user.policies
                    if p.year == year - 1 and p.entitlement_id == entitlement_id and p.carry_over.enabled
                ),
                None,
            )
            if previous is not None:
                breakdown.expiry_label = get_expiry_label(previous)

        stats.breakdown = breakdown
        stats.allowance = total
        stats.remaining = max(0.0, total - stats.used)
        return stats

    def get_balance_overview(self, user_id: str, year: int) -> List[EntitlementStats]:
        """Stats for every entitlement the user holds an active policy for in a year."""
        user = self.workspace.get_user(user_id)
        if user is None:
            return []

        seen = set()
        overview = []
        for policy in user.policies:
            if policy.year != year or not policy.is_active or policy.entitlement_id in seen:
                continue
            seen.add(policy.entitlement_id)
            overview.append(self.get_entitlement_stats(user_id, policy.entitlement_id, year))
        return overview

    def find_expiring_carry_over(
        self,
        user_id: str,
        current_entitlement_id: str,
        trip_start: Optional[date],
    ) -> Optional[ExpirySuggestion]:
        """
        Another entitlement holding carried-over days that expire on or after
        the trip start, and so should be used first.
        """
        user = self.workspace.get_user(user_id)
        if user is None or trip_start is None:
            return None

        year = trip_start.year
        previous_policies = [
            p for p in user.policies
            if p.year == year - 1 and p.carry_over.enabled
        ]

        for entitlement in self.get_user_entitlements(user_id):
            if entitlement.id == current_entitlement_id:
                continue
            for source in previous_policies:
                if source.carry_over_target != entitlement.id:
                    continue
                balance = self.get_remaining_balance(user_id, entitlement.id, year)
                if balance <= 0 or not is_carry_over_expiring(source, year, trip_start):
                    continue
                return ExpirySuggestion(
                    entitlement_id=entitlement.id,
                    name=entitlement.name,
                    expiry_date=get_carry_over_expiry(source, year),
                    balance=None if is_unlimited(balance) else balance,
                    is_unlimited=is_unlimited(balance),
                )
        return None
