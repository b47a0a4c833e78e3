"""Leave request allocation and validation.

Drives the leave request editor: keeps the form's derived state in sync with
its dates (duration mode coercion, cross-year mode transitions, per-year day
counts), checks the requested days against resolved balances, and turns a
finished form into the trip record handed to persistence.

Nothing here raises on bad input. Problems are reported as validation
issues; the caller decides whether to block submission.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from wandergrid.config.settings import LeaveEngineSettings, get_settings
from wandergrid.schemas.leave_request import (
    AllocationBalance,
    CrossYearConfig,
    DayBreakdown,
    DeductionSummary,
    ExpirySuggestion,
    LeaveRequestForm,
    SelectionMode,
)
from wandergrid.schemas.workspace import (
    SINGLE_DAY_MODES,
    DurationMode,
    EndPortion,
    StartPortion,
    Trip,
    TripAllocation,
    TripStatus,
    WorkspaceSnapshot,
)
from wandergrid.services.day_weight_service import (
    DayWeightService,
    summarize,
    toggle_excluded_date,
)
from wandergrid.services.entitlement_service import EntitlementService, is_unlimited
from wandergrid.services.usage_service import UsageService

logger = logging.getLogger(__name__)


TIME_OFF_LOCATION = "Time Off"
NON_TRAVEL_LOCATIONS = frozenset({TIME_OFF_LOCATION, "Remote"})


# =============================================================================
# Validation Result Types
# =============================================================================

class IssueSeverity(str, Enum):
    """Errors block submission; warnings are shown but do not."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class AllocationIssue:
    """A problem with one field of a leave request."""

    field: str
    message: str
    code: str
    severity: IssueSeverity = IssueSeverity.ERROR

    @property
    def blocking(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "code": self.code,
            "severity": self.severity.value,
        }


@dataclass
class ValidationResult:
    """Issues found while checking a request against its balances."""

    issues: List[AllocationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> List[AllocationIssue]:
        return [issue for issue in self.issues if issue.blocking]

    @property
    def warnings(self) -> List[AllocationIssue]:
        return [issue for issue in self.issues if not issue.blocking]

    def add_error(self, field: str, message: str, code: str) -> None:
        self.issues.append(AllocationIssue(field, message, code))

    def add_warning(self, field: str, message: str, code: str) -> None:
        self.issues.append(AllocationIssue(field, message, code, IssueSeverity.WARNING))

    def has_code(self, code: str) -> bool:
        return any(issue.code == code for issue in self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": [issue.to_dict() for issue in self.issues],
        }


# =============================================================================
# Evaluation Result
# =============================================================================

def _json_amount(value: Optional[float]) -> Optional[float]:
    if value is None or is_unlimited(value):
        return None
    return value


@dataclass
class AllocationEvaluation:
    """Everything derived from a leave request form."""

    form: LeaveRequestForm
    breakdown: List[DayBreakdown]
    summary: DeductionSummary
    selection_mode: SelectionMode
    validation: ValidationResult
    balances: List[AllocationBalance] = field(default_factory=list)
    exceeds_balance: bool = False
    total_allocated: float = 0.0
    allocation_mismatch: bool = False
    is_single_day: bool = False
    is_date_invalid: bool = False
    missing_fields: List[str] = field(default_factory=list)
    suggestion: Optional[ExpirySuggestion] = None

    @property
    def total_deduction(self) -> float:
        return self.summary.total

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid

    @property
    def can_submit(self) -> bool:
        """Valid and carrying everything a trip record needs."""
        return self.is_valid and not self.missing_fields

    def to_dict(self) -> Dict[str, Any]:
        """JSON body using the same camelCase keys as the workspace models."""
        suggestion = self.suggestion
        return {
            "selectionMode": self.selection_mode.value,
            "totalDeduction": self.total_deduction,
            "daysByYear": {str(y): d for y, d in sorted(self.summary.by_year.items())},
            "breakdown": [day.model_dump(mode="json", by_alias=True) for day in self.breakdown],
            "balances": [b.model_dump(mode="json", by_alias=True) for b in self.balances],
            "exceedsBalance": self.exceeds_balance,
            "totalAllocated": self.total_allocated,
            "allocationMismatch": self.allocation_mismatch,
            "isSingleDay": self.is_single_day,
            "isDateInvalid": self.is_date_invalid,
            "missingFields": list(self.missing_fields),
            "suggestion": suggestion.model_dump(mode="json", by_alias=True) if suggestion else None,
            "canSubmit": self.can_submit,
            "validation": self.validation.to_dict(),
        }


# =============================================================================
# Allocation Service
# =============================================================================

class AllocationService:
    """
    Service for editing, validating and finalizing leave requests.

    Selection modes:
    - single: one entitlement, valid when its balance covers the deduction
    - multi_category: user-entered split, must add up to the deduction
    - cross_year: entered automatically when the request spans a new year;
      per-year day counts follow the day breakdown
    """

    def __init__(
        self,
        workspace: WorkspaceSnapshot,
        settings: Optional[LeaveEngineSettings] = None,
    ):
        """Initialize with the workspace snapshot the form is edited against."""
        self.workspace = workspace
        self.settings = settings or get_settings().leave
        self.day_weights = DayWeightService(workspace, self.settings)

    def get_entitlement_service(self, form: LeaveRequestForm) -> EntitlementService:
        """Resolver that ignores the trip being edited when summing usage."""
        usage = UsageService(
            self.workspace,
            exclude_trip_id=form.id,
            settings=self.settings,
            day_weights=self.day_weights,
        )
        return EntitlementService(self.workspace, settings=self.settings, usage=usage)

    def default_entitlement_id(self, user_id: str) -> str:
        """First entitlement the user holds a policy for, else no-impact."""
        entitlements = self.get_entitlement_service(LeaveRequestForm()).get_user_entitlements(user_id)
        if entitlements:
            return entitlements[0].id
        return self.settings.no_impact_key

    # =========================================================================
    # Form Lifecycle
    # =========================================================================

    def new_form(self, user_id: Optional[str] = None, today: Optional[date] = None) -> LeaveRequestForm:
        """Blank request for a user (the first workspace user by default)."""
        today = today or date.today()
        if user_id is None and self.workspace.users:
            user_id = self.workspace.users[0].id
        user_id = user_id or ""

        user_entitlements = self.get_entitlement_service(LeaveRequestForm()).get_user_entitlements(user_id)
        if user_entitlements:
            entitlement_id = user_entitlements[0].id
        elif self.workspace.entitlements:
            entitlement_id = self.workspace.entitlements[0].id
        else:
            entitlement_id = self.settings.no_impact_key

        return LeaveRequestForm(
            user_id=user_id,
            entitlement_id=entitlement_id,
            start_date=today,
        )

    def load_form(self, trip: Trip, today: Optional[date] = None) -> LeaveRequestForm:
        """Editable form for an existing trip."""
        today = today or date.today()

        reason = trip.name or ""
        if ":" in reason:
            reason = reason[reason.index(":") + 1:].strip()

        allocations = [a.model_copy() for a in trip.allocations or []]
        has_year_targets = any(a.target_year is not None for a in allocations)

        cross_year_config = None
        if len(allocations) == 2 and all(a.target_year is not None for a in allocations):
            first, second = allocations
            cross_year_config = CrossYearConfig(
                year1=first.target_year,
                days1=first.days,
                entitlement1=first.entitlement_id,
                year2=second.target_year,
                days2=second.days,
                entitlement2=second.entitlement_id,
            )

        if trip.participants:
            user_id = trip.participants[0]
        else:
            user_id = self.workspace.users[0].id if self.workspace.users else ""

        return LeaveRequestForm(
            id=trip.id,
            user_id=user_id,
            entitlement_id=trip.entitlement_id or self.settings.no_impact_key,
            reason=reason,
            location=trip.location or "",
            start_date=trip.start_date or today,
            end_date=trip.end_date or today,
            mode=trip.duration_mode or DurationMode.ALL_FULL,
            start_portion=trip.start_portion or StartPortion.FULL,
            end_portion=trip.end_portion or EndPortion.FULL,
            icon=trip.icon or LeaveRequestForm().icon,
            allocations=allocations,
            use_multi_category=bool(allocations) and not has_year_targets,
            cross_year_mode=has_year_targets,
            cross_year_config=cross_year_config,
            is_travel=bool(trip.location) and trip.location not in NON_TRAVEL_LOCATIONS,
            excluded_dates=trip.excluded_dates,
        )

    def change_user(self, form: LeaveRequestForm, user_id: str) -> LeaveRequestForm:
        """Switch the requesting user, resetting the entitlement to their default."""
        updated = form.model_copy(update={
            "user_id": user_id,
            "entitlement_id": self.default_entitlement_id(user_id),
        })
        return self.sync_form(updated)

    def toggle_date(self, form: LeaveRequestForm, day: date) -> LeaveRequestForm:
        """Flip one date's weekend/holiday exception and resync."""
        excluded = toggle_excluded_date(frozenset(form.excluded_dates), day)
        return self.sync_form(form.model_copy(update={"excluded_dates": sorted(excluded)}))

    def add_allocation(self, form: LeaveRequestForm) -> LeaveRequestForm:
        """Append a zero-day split entry using the next unused entitlement."""
        user_entitlements = self.get_entitlement_service(form).get_user_entitlements(form.user_id)
        used_ids = {a.entitlement_id for a in form.allocations}
        next_entitlement = next(
            (e for e in user_entitlements if e.id not in used_ids),
            user_entitlements[0] if user_entitlements else None,
        )
        allocation = TripAllocation(
            entitlement_id=next_entitlement.id if next_entitlement else "",
            days=0,
        )
        return form.model_copy(update={"allocations": [*form.allocations, allocation]})

    def convert_to_split(self, form: LeaveRequestForm) -> LeaveRequestForm:
        """
        Switch a single-category request that exceeds its balance to a split.

        The current entitlement takes what it has left; the next entitlement
        the user holds takes the remainder.
        """
        form = self.sync_form(form)
        total = self.compute_summary(form).total
        available = self.get_entitlement_service(form).get_remaining_balance(
            form.user_id, form.entitlement_id, self._balance_year(form)
        )
        primary_days = min(max(0.0, available), total)

        user_entitlements = self.get_entitlement_service(form).get_user_entitlements(form.user_id)
        secondary = next(
            (e for e in user_entitlements if e.id != form.entitlement_id),
            user_entitlements[0] if user_entitlements else None,
        )

        return form.model_copy(update={
            "use_multi_category": True,
            "allocations": [
                TripAllocation(entitlement_id=form.entitlement_id, days=primary_days),
                TripAllocation(
                    entitlement_id=secondary.id if secondary else form.entitlement_id,
                    days=max(0.0, total - primary_days),
                ),
            ],
        })

    # =========================================================================
    # Derived State
    # =========================================================================

    def compute_breakdown(self, form: LeaveRequestForm) -> List[DayBreakdown]:
        """Day breakdown for the form's range against its user's calendars."""
        return self.day_weights.build_user_breakdown(
            form.user_id,
            form.start_date,
            form.effective_end_date,
            form.mode,
            form.start_portion,
            form.end_portion,
        )

    def compute_summary(self, form: LeaveRequestForm) -> DeductionSummary:
        return summarize(self.compute_breakdown(form), frozenset(form.excluded_dates))

    def sync_form(self, form: LeaveRequestForm) -> LeaveRequestForm:
        """
        Recompute the derived parts of a form after any edit.

        - single-day half modes fall back to full days on multi-day ranges
        - a start year before the end year enters cross-year mode, replacing
          any multi-category split; equal years leave it again
        - cross-year day counts are taken from the per-year deduction
        """
        updates: Dict[str, Any] = {}
        start, end = form.start_date, form.effective_end_date

        if form.mode in SINGLE_DAY_MODES and start and end and start != end:
            updates["mode"] = DurationMode.ALL_FULL

        cross_year_mode = form.cross_year_mode
        config = form.cross_year_config
        if start and form.end_date:
            if start.year < form.end_date.year:
                if (
                    not cross_year_mode
                    or config is None
                    or config.year1 != start.year
                    or config.year2 != form.end_date.year
                ):
                    default_entitlement = form.entitlement_id
                    if not default_entitlement or default_entitlement == self.settings.no_impact_key:
                        default_entitlement = self.default_entitlement_id(form.user_id)
                    config = CrossYearConfig(
                        year1=start.year,
                        days1=0,
                        entitlement1=config.entitlement1 if config else default_entitlement,
                        year2=form.end_date.year,
                        days2=0,
                        entitlement2=config.entitlement2 if config else default_entitlement,
                    )
                    cross_year_mode = True
                    updates["use_multi_category"] = False
                    updates["allocations"] = []
                    logger.debug(f"Request {form.id!r} entered cross-year mode {start.year}/{form.end_date.year}")
            elif cross_year_mode:
                cross_year_mode = False
                config = None

        synced = form.model_copy(update={
            **updates,
            "cross_year_mode": cross_year_mode,
            "cross_year_config": config,
        })

        if config is not None:
            summary = self.compute_summary(synced)
            synced = synced.model_copy(update={
                "cross_year_config": config.model_copy(update={
                    "days1": summary.for_year(config.year1),
                    "days2": summary.for_year(config.year2),
                }),
            })
        return synced

    # =========================================================================
    # Validation
    # =========================================================================

    def _balance_year(self, form: LeaveRequestForm) -> int:
        if form.start_date is not None:
            return form.start_date.year
        return date.today().year

    def _allocation_balance(
        self,
        entitlements: EntitlementService,
        user_id: str,
        entitlement_id: str,
        year: int,
        days: float,
    ) -> AllocationBalance:
        remaining = entitlements.get_remaining_balance(user_id, entitlement_id, year)
        unlimited = is_unlimited(remaining)
        return AllocationBalance(
            entitlement_id=entitlement_id,
            year=year,
            days=days,
            remaining=_json_amount(remaining),
            is_unlimited=unlimited,
            exceeds=not unlimited and days > remaining,
        )

    def evaluate(self, form: LeaveRequestForm) -> AllocationEvaluation:
        """Sync the form and check its allocation against resolved balances."""
        form = self.sync_form(form)
        breakdown = self.compute_breakdown(form)
        summary = summarize(breakdown, frozenset(form.excluded_dates))
        entitlements = self.get_entitlement_service(form)
        result = ValidationResult()

        evaluation = AllocationEvaluation(
            form=form,
            breakdown=breakdown,
            summary=summary,
            selection_mode=form.selection_mode,
            validation=result,
        )

        start, end = form.start_date, form.end_date
        evaluation.is_single_day = bool(start) and (end is None or start == end)
        evaluation.is_date_invalid = bool(start and end and end < start)
        if evaluation.is_date_invalid:
            result.add_error("end_date", "End date must be on or after the start date", "invalid_date_range")

        evaluation.missing_fields = [
            name for name, value in (
                ("user_id", form.user_id),
                ("reason", form.reason.strip()),
                ("start_date", start),
            )
            if not value
        ]

        mode = evaluation.selection_mode
        if mode == SelectionMode.CROSS_YEAR:
            self._validate_cross_year(form, entitlements, evaluation)
        elif mode == SelectionMode.MULTI_CATEGORY:
            self._validate_multi_category(form, entitlements, evaluation)
        else:
            self._validate_single(form, entitlements, evaluation)
            evaluation.suggestion = entitlements.find_expiring_carry_over(
                form.user_id, form.entitlement_id, start
            )

        return evaluation

    def _validate_single(
        self,
        form: LeaveRequestForm,
        entitlements: EntitlementService,
        evaluation: AllocationEvaluation,
    ) -> None:
        total = evaluation.total_deduction
        balance = self._allocation_balance(
            entitlements, form.user_id, form.entitlement_id, self._balance_year(form), total
        )
        evaluation.balances = [balance]

        if form.entitlement_id == self.settings.no_impact_key:
            return

        if balance.exceeds:
            evaluation.exceeds_balance = True
            evaluation.validation.add_error(
                "entitlement_id",
                f"Request of {total:g} days exceeds the remaining balance of {balance.remaining:g} days",
                "balance_exceeded",
            )

    def _validate_multi_category(
        self,
        form: LeaveRequestForm,
        entitlements: EntitlementService,
        evaluation: AllocationEvaluation,
    ) -> None:
        total = evaluation.total_deduction
        year = self._balance_year(form)

        evaluation.total_allocated = sum(float(a.days) for a in form.allocations)
        evaluation.allocation_mismatch = (
            abs(evaluation.total_allocated - total) > self.settings.allocation_tolerance
        )
        if evaluation.allocation_mismatch:
            evaluation.validation.add_error(
                "allocations",
                f"Allocated {evaluation.total_allocated:g} days but the request deducts {total:g} days",
                "allocation_mismatch",
            )

        for index, allocation in enumerate(form.allocations):
            balance = self._allocation_balance(
                entitlements, form.user_id, allocation.entitlement_id, year, allocation.days
            )
            evaluation.balances.append(balance)
            if balance.exceeds:
                evaluation.validation.add_warning(
                    f"allocations.{index}.days",
                    f"{allocation.days:g} days exceeds the remaining balance of {balance.remaining:g} days",
                    "allocation_exceeds_balance",
                )

    def _validate_cross_year(
        self,
        form: LeaveRequestForm,
        entitlements: EntitlementService,
        evaluation: AllocationEvaluation,
    ) -> None:
        config = form.cross_year_config
        if config.year2 - config.year1 > 1:
            evaluation.validation.add_error(
                "end_date",
                "Requests can span at most two calendar years",
                "cross_year_span_exceeded",
            )

        targets = (
            ("cross_year_config.days1", config.entitlement1, config.year1, config.days1),
            ("cross_year_config.days2", config.entitlement2, config.year2, config.days2),
        )
        for field_name, entitlement_id, year, days in targets:
            balance = self._allocation_balance(entitlements, form.user_id, entitlement_id, year, days)
            evaluation.balances.append(balance)
            if balance.exceeds:
                evaluation.exceeds_balance = True
                evaluation.validation.add_error(
                    field_name,
                    f"{days:g} days in {year} exceeds the remaining balance of {balance.remaining:g} days",
                    "balance_exceeded",
                )

    # =========================================================================
    # Finalization
    # =========================================================================

    def build_trip(self, form: LeaveRequestForm, trip_id: Optional[str] = None) -> Trip:
        """Trip record for a finished form, ready to be created or updated."""
        form = self.sync_form(form)
        total = self.compute_summary(form).total
        no_impact = self.settings.no_impact_key

        primary = form.entitlement_id
        mode = form.selection_mode
        if mode == SelectionMode.MULTI_CATEGORY and form.allocations:
            primary = form.allocations[0].entitlement_id
        if mode == SelectionMode.CROSS_YEAR:
            primary = form.cross_year_config.entitlement1

        allocations: Optional[List[TripAllocation]] = None
        if mode == SelectionMode.CROSS_YEAR:
            config = form.cross_year_config
            allocations = [
                TripAllocation(entitlement_id=config.entitlement1, days=config.days1, target_year=config.year1),
                TripAllocation(entitlement_id=config.entitlement2, days=config.days2, target_year=config.year2),
            ]
        elif mode == SelectionMode.MULTI_CATEGORY:
            allocations = [a.model_copy() for a in form.allocations]
        elif total != 0 and primary and primary != no_impact:
            allocations = [TripAllocation(entitlement_id=primary, days=total)]

        trip = Trip(
            id=form.id or trip_id or uuid4().hex[:9],
            name=form.reason,
            start_date=form.start_date,
            end_date=form.effective_end_date,
            location=form.location if form.is_travel else TIME_OFF_LOCATION,
            status=TripStatus.UPCOMING,
            participants=[form.user_id] if form.user_id else [],
            icon=form.icon,
            duration_mode=form.mode,
            start_portion=form.start_portion,
            end_portion=form.end_portion,
            entitlement_id=primary if primary and primary != no_impact else None,
            allocations=allocations,
            excluded_dates=sorted(form.excluded_dates),
        )
        logger.info(f"Built trip {trip.id} for user {form.user_id} deducting {total:g} days")
        return trip
