"""API endpoints for leave request evaluation and balance lookup.

The engine is stateless: every request carries the workspace snapshot it is
evaluated against and nothing is persisted here.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import Field

from wandergrid.config.settings import get_settings
from wandergrid.schemas.leave_request import DayBreakdown, EntitlementStats, LeaveRequestForm
from wandergrid.schemas.workspace import Trip, WorkspaceModel, WorkspaceSnapshot
from wandergrid.services.allocation_service import AllocationService
from wandergrid.services.entitlement_service import EntitlementService
from wandergrid.utils.errors import LeaveRequestRejected, UnknownUserError

logger = logging.getLogger(__name__)


leave_engine_router = APIRouter(
    prefix="/api/leave",
    tags=["Leave Engine"],
)


# =============================================================================
# Request / Response Models
# =============================================================================

class LeaveRequestPayload(WorkspaceModel):
    """A leave request form and the workspace it is evaluated against."""

    workspace: WorkspaceSnapshot = Field(default_factory=WorkspaceSnapshot)
    form: LeaveRequestForm = Field(..., description="Leave request being edited")


class BalanceRequest(WorkspaceModel):
    """Balance overview lookup."""

    workspace: WorkspaceSnapshot = Field(default_factory=WorkspaceSnapshot)
    user_id: str = Field(..., description="User to resolve balances for")
    year: Optional[int] = Field(default=None, description="Defaults to the current year")


class BreakdownResponse(WorkspaceModel):
    """Day breakdown and deduction totals of a request."""

    breakdown: List[DayBreakdown]
    total_deduction: float
    days_by_year: Dict[int, float]


class BalanceOverviewResponse(WorkspaceModel):
    """Stats for every entitlement a user holds in a year."""

    user_id: str
    year: int
    entitlements: List[EntitlementStats]


# =============================================================================
# Endpoints
# =============================================================================

@leave_engine_router.post(
    "/breakdown",
    response_model=BreakdownResponse,
    summary="Compute the day breakdown of a leave request",
)
async def compute_breakdown(payload: LeaveRequestPayload) -> BreakdownResponse:
    """Weigh every day of the request against the user's calendars."""
    service = AllocationService(payload.workspace, get_settings().leave)
    form = service.sync_form(payload.form)
    breakdown = service.compute_breakdown(form)
    summary = service.compute_summary(form)
    return BreakdownResponse(
        breakdown=breakdown,
        total_deduction=summary.total,
        days_by_year=summary.by_year,
    )


@leave_engine_router.post(
    "/evaluate",
    summary="Validate a leave request against balances",
)
async def evaluate_request(payload: LeaveRequestPayload) -> Dict[str, Any]:
    """Sync the form's derived state and report balance issues."""
    service = AllocationService(payload.workspace, get_settings().leave)
    evaluation = service.evaluate(payload.form)
    return {
        "form": evaluation.form.model_dump(mode="json", by_alias=True),
        "evaluation": evaluation.to_dict(),
    }


@leave_engine_router.post(
    "/submit",
    response_model=Trip,
    summary="Finalize a leave request into a trip record",
)
async def submit_request(payload: LeaveRequestPayload) -> Trip:
    """
    Build the trip to persist for a finished request.

    Blocking validation issues and missing required fields are returned as
    field errors.
    """
    service = AllocationService(payload.workspace, get_settings().leave)
    evaluation = service.evaluate(payload.form)

    if not evaluation.can_submit:
        rejection = LeaveRequestRejected.from_evaluation(
            evaluation.validation.errors, evaluation.missing_fields
        )
        logger.info(
            f"Rejected leave request for user {payload.form.user_id}: "
            f"{len(rejection.field_errors)} issue(s)"
        )
        raise rejection

    return service.build_trip(evaluation.form)


@leave_engine_router.post(
    "/balances",
    response_model=BalanceOverviewResponse,
    summary="Get a user's balance overview for a year",
)
async def get_balances(payload: BalanceRequest) -> BalanceOverviewResponse:
    """Allowance, usage and remaining days per entitlement."""
    if payload.workspace.get_user(payload.user_id) is None:
        raise UnknownUserError(payload.user_id)

    year = payload.year or date.today().year
    service = EntitlementService(payload.workspace, settings=get_settings().leave)
    return BalanceOverviewResponse(
        user_id=payload.user_id,
        year=year,
        entitlements=service.get_balance_overview(payload.user_id, year),
    )
