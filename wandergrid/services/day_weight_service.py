"""Day-weight calculation for leave requests.

Expands a date range into per-day weights (1, 0.5 or 0) taking weekends,
public holidays, half-day modes and per-date user exceptions into account.
"""

import logging
from datetime import date, timedelta
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional

from wandergrid.config.settings import LeaveEngineSettings, get_settings
from wandergrid.schemas.leave_request import DayBreakdown, DeductionSummary
from wandergrid.schemas.workspace import (
    HALF_DAY_MODES,
    DurationMode,
    EndPortion,
    HolidayWeekendRule,
    StartPortion,
    Trip,
    User,
    WorkspaceSnapshot,
)

logger = logging.getLogger(__name__)


FULL_DAY = 1.0
HALF_DAY = 0.5


# =============================================================================
# Calendar Helpers
# =============================================================================

def js_weekday(day: date) -> int:
    """Weekday number as stored in workspace settings (0=Sunday ... 6=Saturday)."""
    return (day.weekday() + 1) % 7


def is_calendar_weekend(day: date) -> bool:
    """Saturday or Sunday, regardless of the workspace working days."""
    return day.weekday() >= 5


def next_monday(day: date) -> date:
    """Monday following a weekend day; other days are returned unchanged."""
    if day.weekday() == 6:
        return day + timedelta(days=1)
    if day.weekday() == 5:
        return day + timedelta(days=2)
    return day


def iter_days(start: date, end: date) -> Iterable[date]:
    """Every calendar day of [start, end] in ascending order."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


# =============================================================================
# Weight Rules
# =============================================================================

def day_weight(
    day: date,
    start: date,
    end: date,
    mode: Optional[DurationMode],
    start_portion: Optional[StartPortion] = None,
    end_portion: Optional[EndPortion] = None,
) -> float:
    """
    Weight of one day before weekend/holiday/exception reconciliation.

    Half-day modes weigh every day 0.5. Custom mode halves the start day when
    it starts in the afternoon and the end day when it ends at noon; on a
    single-day range either flag halves that day.
    """
    if mode in HALF_DAY_MODES:
        return HALF_DAY
    if mode != DurationMode.CUSTOM:
        return FULL_DAY

    starts_pm = start_portion == StartPortion.PM
    ends_am = end_portion == EndPortion.AM
    if day == start and starts_pm:
        return HALF_DAY
    if day == end and ends_am:
        return HALF_DAY
    return FULL_DAY


def is_day_active(day: DayBreakdown, excluded_dates: AbstractSet[date]) -> bool:
    """
    Whether a day counts toward the deduction.

    An exception always flips the default: naturally-off days (weekends and
    holidays) count only when excepted, working days count unless excepted.
    """
    naturally_off = day.is_weekend or day.is_holiday
    is_exception = day.date in excluded_dates
    return is_exception if naturally_off else not is_exception


def summarize(
    breakdown: Iterable[DayBreakdown],
    excluded_dates: AbstractSet[date],
) -> DeductionSummary:
    """Total and per-year deduction over the active days of a breakdown."""
    total = 0.0
    by_year: Dict[int, float] = {}
    for day in breakdown:
        if not is_day_active(day, excluded_dates):
            continue
        total += day.weight
        by_year[day.year] = by_year.get(day.year, 0.0) + day.weight
    return DeductionSummary(total=total, by_year=by_year)


def toggle_excluded_date(excluded_dates: AbstractSet[date], day: date) -> FrozenSet[date]:
    """Flip one date's exception. Toggling the same date twice is a no-op."""
    if day in excluded_dates:
        return frozenset(d for d in excluded_dates if d != day)
    return frozenset(excluded_dates) | {day}


# =============================================================================
# Day Weight Service
# =============================================================================

class DayWeightService:
    """Builds day breakdowns against a workspace's calendars."""

    def __init__(
        self,
        workspace: WorkspaceSnapshot,
        settings: Optional[LeaveEngineSettings] = None,
    ):
        """Initialize with the workspace snapshot being evaluated."""
        self.workspace = workspace
        self.settings = settings or get_settings().leave
        self._holiday_maps: Dict[str, Dict[date, str]] = {}

    @property
    def working_days(self) -> FrozenSet[int]:
        days = self.workspace.settings.working_days
        if not days:
            days = self.settings.default_working_days
        return frozenset(days)

    # =========================================================================
    # Holidays
    # =========================================================================

    def get_effective_holidays(self, user: Optional[User]) -> Dict[date, str]:
        """
        Holidays that apply to a user, keyed by date.

        Only included holidays from the user's subscribed calendars count.
        Under the Monday rule a weekend holiday is also observed on the
        following Monday.
        """
        if user is None or not user.holiday_config_ids:
            return {}

        cached = self._holiday_maps.get(user.id)
        if cached is not None:
            return cached

        config_ids = set(user.holiday_config_ids)
        observe_monday = user.holiday_weekend_rule == HolidayWeekendRule.MONDAY
        holiday_map: Dict[date, str] = {}

        for holiday in self.workspace.holidays:
            if not holiday.is_included or holiday.config_id not in config_ids:
                continue
            if holiday.date is None:
                logger.debug(f"Skipping holiday {holiday.id!r} with unreadable date")
                continue
            holiday_map[holiday.date] = holiday.name
            if observe_monday and is_calendar_weekend(holiday.date):
                observed = next_monday(holiday.date)
                holiday_map[observed] = f"{holiday.name}{self.settings.observed_suffix}"

        self._holiday_maps[user.id] = holiday_map
        return holiday_map

    # =========================================================================
    # Breakdown
    # =========================================================================

    def build_breakdown(
        self,
        start: Optional[date],
        end: Optional[date],
        mode: Optional[DurationMode],
        start_portion: Optional[StartPortion],
        end_portion: Optional[EndPortion],
        holidays: Dict[date, str],
    ) -> List[DayBreakdown]:
        """Classify and weigh every day of [start, end], ascending."""
        if start is None:
            return []
        end = end or start
        if end < start:
            return []

        working_days = self.working_days
        breakdown = []
        for day in iter_days(start, end):
            holiday_name = holidays.get(day)
            breakdown.append(DayBreakdown(
                date=day,
                year=day.year,
                weight=day_weight(day, start, end, mode, start_portion, end_portion),
                is_weekend=js_weekday(day) not in working_days,
                is_holiday=holiday_name is not None,
                holiday_name=holiday_name,
                day_name=day.strftime("%a"),
                day_number=day.day,
            ))
        return breakdown

    def build_user_breakdown(
        self,
        user_id: Optional[str],
        start: Optional[date],
        end: Optional[date],
        mode: Optional[DurationMode],
        start_portion: Optional[StartPortion] = None,
        end_portion: Optional[EndPortion] = None,
    ) -> List[DayBreakdown]:
        """Breakdown against the holiday calendars of one user."""
        holidays = self.get_effective_holidays(self.workspace.get_user(user_id))
        return self.build_breakdown(start, end, mode, start_portion, end_portion, holidays)

    # =========================================================================
    # Trips
    # =========================================================================

    def summarize_trip(self, trip: Trip) -> DeductionSummary:
        """Deduction of a stored trip, charged against its first participant."""
        if not trip.participants:
            return DeductionSummary()
        breakdown = self.build_user_breakdown(
            trip.participants[0],
            trip.start_date,
            trip.end_date,
            trip.duration_mode,
            trip.start_portion,
            trip.end_portion,
        )
        return summarize(breakdown, frozenset(trip.excluded_dates))

    def calculate_trip_weight(self, trip: Trip, year: Optional[int] = None) -> float:
        """Deduction of a stored trip, optionally restricted to one year."""
        summary = self.summarize_trip(trip)
        if year is None:
            return summary.total
        return summary.for_year(year)
