"""Usage accumulation: days already consumed against an entitlement."""

import logging
from typing import List, Optional

from wandergrid.config.settings import LeaveEngineSettings, get_settings
from wandergrid.schemas.workspace import (
    COUNTED_TRIP_STATUSES,
    Trip,
    TripAllocation,
    WorkspaceSnapshot,
)
from wandergrid.services.day_weight_service import DayWeightService

logger = logging.getLogger(__name__)


def _find_allocation(
    allocations: List[TripAllocation],
    entitlement_id: str,
    target_year: Optional[int],
) -> Optional[TripAllocation]:
    for allocation in allocations:
        if allocation.entitlement_id == entitlement_id and allocation.target_year == target_year:
            return allocation
    return None


class UsageService:
    """Sums the days existing trips consume per entitlement and year."""

    def __init__(
        self,
        workspace: WorkspaceSnapshot,
        exclude_trip_id: Optional[str] = None,
        settings: Optional[LeaveEngineSettings] = None,
        day_weights: Optional[DayWeightService] = None,
    ):
        """
        Initialize with the workspace snapshot.

        Args:
            workspace: Records to read trips from
            exclude_trip_id: Trip currently being edited, never counted
            settings: Engine settings (defaults to application settings)
            day_weights: Shared day-weight service for the same workspace
        """
        self.workspace = workspace
        self.exclude_trip_id = exclude_trip_id
        self.settings = settings or get_settings().leave
        self.day_weights = day_weights or DayWeightService(workspace, self.settings)

    def get_counted_trips(self, user_id: str) -> List[Trip]:
        """Confirmed or past trips of a user, minus the trip being edited."""
        return [
            trip for trip in self.workspace.trips
            if user_id in trip.participants
            and trip.status in COUNTED_TRIP_STATUSES
            and not (self.exclude_trip_id and trip.id == self.exclude_trip_id)
        ]

    def get_trip_usage(self, trip: Trip, entitlement_id: str, year: int) -> float:
        """
        Days one trip consumes from an entitlement in a year.

        Year-targeted allocations are exact. Untargeted allocations are
        prorated by the share of the trip's weight falling in the year.
        Trips without allocations charge their whole in-year weight to
        their single entitlement.
        """
        if trip.allocations:
            targeted = _find_allocation(trip.allocations, entitlement_id, year)
            if targeted is not None:
                return targeted.days

            untargeted = _find_allocation(trip.allocations, entitlement_id, None)
            if untargeted is None:
                return 0.0

            summary = self.day_weights.summarize_trip(trip)
            if summary.total <= 0:
                return 0.0
            return untargeted.days * (summary.for_year(year) / summary.total)

        if trip.entitlement_id == entitlement_id:
            return self.day_weights.calculate_trip_weight(trip, year)
        return 0.0

    def get_used_days(self, user_id: str, entitlement_id: str, year: int) -> float:
        """Total days consumed against an entitlement in a year."""
        if entitlement_id == self.settings.no_impact_key:
            return 0.0

        used = 0.0
        for trip in self.get_counted_trips(user_id):
            used += self.get_trip_usage(trip, entitlement_id, year)
        return used
