"""Tests for day-weight calculation."""

from datetime import date

import pytest

from wandergrid.schemas.workspace import (
    DurationMode,
    EndPortion,
    HolidayWeekendRule,
    StartPortion,
    TripStatus,
)
from wandergrid.services.day_weight_service import (
    DayWeightService,
    day_weight,
    is_day_active,
    js_weekday,
    next_monday,
    summarize,
    toggle_excluded_date,
)


# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)
FRIDAY = date(2024, 1, 5)
SATURDAY = date(2024, 1, 6)
SUNDAY = date(2024, 1, 7)
NEXT_MONDAY = date(2024, 1, 8)


class TestCalendarHelpers:
    """Tests for weekday helpers."""

    def test_js_weekday_numbers_sunday_as_zero(self):
        """Test weekdays use 0=Sunday ... 6=Saturday."""
        assert js_weekday(SUNDAY) == 0
        assert js_weekday(MONDAY) == 1
        assert js_weekday(SATURDAY) == 6

    def test_next_monday(self):
        """Test weekend days move to the following Monday."""
        assert next_monday(SATURDAY) == NEXT_MONDAY
        assert next_monday(SUNDAY) == NEXT_MONDAY
        assert next_monday(FRIDAY) == FRIDAY


class TestDayWeight:
    """Tests for per-day weight rules."""

    def test_full_day_mode(self):
        """Test all_full weighs every day 1."""
        assert day_weight(MONDAY, MONDAY, FRIDAY, DurationMode.ALL_FULL) == 1.0

    @pytest.mark.parametrize("mode", [
        DurationMode.ALL_AM,
        DurationMode.ALL_PM,
        DurationMode.SINGLE_AM,
        DurationMode.SINGLE_PM,
    ])
    def test_half_day_modes(self, mode):
        """Test half-day modes weigh 0.5."""
        assert day_weight(MONDAY, MONDAY, MONDAY, mode) == 0.5

    def test_custom_start_afternoon(self):
        """Test custom mode halves the first day when starting in the afternoon."""
        args = (MONDAY, FRIDAY, DurationMode.CUSTOM, StartPortion.PM, EndPortion.FULL)
        assert day_weight(MONDAY, *args) == 0.5
        assert day_weight(date(2024, 1, 3), *args) == 1.0
        assert day_weight(FRIDAY, *args) == 1.0

    def test_custom_end_morning(self):
        """Test custom mode halves the last day when ending at noon."""
        args = (MONDAY, FRIDAY, DurationMode.CUSTOM, StartPortion.FULL, EndPortion.AM)
        assert day_weight(MONDAY, *args) == 1.0
        assert day_weight(FRIDAY, *args) == 0.5

    def test_custom_single_day_either_flag(self):
        """Test a single-day custom range is halved by either flag."""
        assert day_weight(MONDAY, MONDAY, MONDAY, DurationMode.CUSTOM, StartPortion.PM, EndPortion.FULL) == 0.5
        assert day_weight(MONDAY, MONDAY, MONDAY, DurationMode.CUSTOM, StartPortion.FULL, EndPortion.AM) == 0.5
        assert day_weight(MONDAY, MONDAY, MONDAY, DurationMode.CUSTOM, StartPortion.FULL, EndPortion.FULL) == 1.0


class TestExceptions:
    """Tests for per-date exceptions."""

    def test_toggle_twice_is_noop(self):
        """Test toggling the same date twice restores the original set."""
        original = frozenset({MONDAY})
        once = toggle_excluded_date(original, SATURDAY)
        assert SATURDAY in once
        assert toggle_excluded_date(once, SATURDAY) == original

    def test_exception_flips_default(self, make_workspace):
        """Test an exception activates weekends and deactivates working days."""
        service = DayWeightService(make_workspace())
        breakdown = service.build_breakdown(FRIDAY, SATURDAY, DurationMode.ALL_FULL, None, None, {})
        friday, saturday = breakdown

        assert is_day_active(friday, frozenset())
        assert not is_day_active(saturday, frozenset())
        assert not is_day_active(friday, frozenset({FRIDAY}))
        assert is_day_active(saturday, frozenset({SATURDAY}))


class TestBuildBreakdown:
    """Tests for DayWeightService.build_breakdown."""

    def test_week_counts_working_days(self, make_workspace, engine_settings):
        """Test a Monday-Sunday week deducts five days."""
        service = DayWeightService(make_workspace(), engine_settings)
        breakdown = service.build_breakdown(MONDAY, SUNDAY, DurationMode.ALL_FULL, None, None, {})

        assert len(breakdown) == 7
        assert [d.is_weekend for d in breakdown] == [False] * 5 + [True, True]
        assert breakdown[0].day_name == "Mon"
        assert breakdown[0].day_number == 1
        assert summarize(breakdown, frozenset()).total == 5

    def test_end_before_start_is_empty(self, make_workspace):
        """Test an inverted range yields no days."""
        service = DayWeightService(make_workspace())
        assert service.build_breakdown(FRIDAY, MONDAY, DurationMode.ALL_FULL, None, None, {}) == []

    def test_missing_end_uses_start(self, make_workspace):
        """Test an open-ended range covers the start day only."""
        service = DayWeightService(make_workspace())
        breakdown = service.build_breakdown(MONDAY, None, DurationMode.ALL_FULL, None, None, {})
        assert [d.date for d in breakdown] == [MONDAY]

    def test_missing_start_is_empty(self, make_workspace):
        """Test no start date yields no days."""
        service = DayWeightService(make_workspace())
        assert service.build_breakdown(None, FRIDAY, DurationMode.ALL_FULL, None, None, {}) == []

    def test_workspace_working_days(self, make_workspace):
        """Test a Sunday-Thursday week treats Friday and Saturday as weekend."""
        service = DayWeightService(make_workspace(working_days=[0, 1, 2, 3, 4]))
        breakdown = service.build_breakdown(MONDAY, SUNDAY, DurationMode.ALL_FULL, None, None, {})
        weekend = [d.date for d in breakdown if d.is_weekend]
        assert weekend == [FRIDAY, SATURDAY]

    def test_empty_working_days_fall_back_to_default(self, make_workspace):
        """Test an empty working-day list uses Monday-Friday."""
        service = DayWeightService(make_workspace(working_days=[]))
        assert service.working_days == frozenset({1, 2, 3, 4, 5})

    def test_cross_year_summary(self, make_workspace):
        """Test per-year totals of a range spanning New Year."""
        service = DayWeightService(make_workspace())
        breakdown = service.build_breakdown(
            date(2024, 12, 28), date(2025, 1, 3), DurationMode.ALL_FULL, None, None, {}
        )
        summary = summarize(breakdown, frozenset())

        assert summary.total == 5
        assert summary.for_year(2024) == 2
        assert summary.for_year(2025) == 3
        assert summary.for_year(2026) == 0


class TestEffectiveHolidays:
    """Tests for holiday resolution per user."""

    def test_holiday_on_working_day_not_deducted(self, make_workspace, make_holiday, holiday_user):
        """Test a weekday holiday is excluded from the deduction."""
        user = holiday_user(HolidayWeekendRule.NONE)
        workspace = make_workspace(users=[user], holidays=[make_holiday(MONDAY, "New Year")])
        service = DayWeightService(workspace)

        breakdown = service.build_user_breakdown("u1", MONDAY, FRIDAY, DurationMode.ALL_FULL)

        assert breakdown[0].is_holiday
        assert breakdown[0].holiday_name == "New Year"
        assert summarize(breakdown, frozenset()).total == 4

    def test_monday_rule_adds_observed_day(self, make_workspace, make_holiday, holiday_user):
        """Test a Saturday holiday is observed on the following Monday."""
        user = holiday_user(HolidayWeekendRule.MONDAY)
        workspace = make_workspace(users=[user], holidays=[make_holiday(SATURDAY)])
        service = DayWeightService(workspace)

        holidays = service.get_effective_holidays(user)

        assert holidays[SATURDAY] == "Founders Day"
        assert holidays[NEXT_MONDAY] == "Founders Day (Observed)"

    def test_no_observed_day_without_monday_rule(self, make_workspace, make_holiday, holiday_user):
        """Test other weekend rules do not add an observed day."""
        user = holiday_user(HolidayWeekendRule.LIEU)
        workspace = make_workspace(users=[user], holidays=[make_holiday(SATURDAY)])

        holidays = DayWeightService(workspace).get_effective_holidays(user)

        assert NEXT_MONDAY not in holidays

    def test_unsubscribed_and_excluded_holidays_ignored(self, make_workspace, make_holiday, holiday_user):
        """Test holidays from other calendars or marked not included are ignored."""
        user = holiday_user(HolidayWeekendRule.NONE)
        workspace = make_workspace(users=[user], holidays=[
            make_holiday(MONDAY, config_id="other"),
            make_holiday(FRIDAY, is_included=False),
        ])

        assert DayWeightService(workspace).get_effective_holidays(user) == {}

    def test_unreadable_holiday_date_skipped(self, make_workspace, make_holiday, holiday_user):
        """Test a holiday with a malformed date degrades to no holiday."""
        user = holiday_user(HolidayWeekendRule.NONE)
        workspace = make_workspace(users=[user], holidays=[make_holiday("not-a-date")])

        assert DayWeightService(workspace).get_effective_holidays(user) == {}

    def test_user_without_calendars(self, make_workspace, make_user):
        """Test a user with no subscribed calendars has no holidays."""
        user = make_user()
        assert DayWeightService(make_workspace(users=[user])).get_effective_holidays(user) == {}


class TestTripWeight:
    """Tests for stored trip weights."""

    def test_trip_weight_honors_excluded_dates(self, make_workspace, make_trip):
        """Test a stored trip's exceptions change its weight."""
        trip = make_trip("t1", MONDAY, SUNDAY, excluded_dates=[MONDAY, SATURDAY])
        service = DayWeightService(make_workspace(trips=[trip]))

        assert service.calculate_trip_weight(trip) == 5

    def test_trip_weight_by_year(self, make_workspace, make_trip):
        """Test a trip's weight restricted to each year."""
        trip = make_trip("t1", date(2024, 12, 28), date(2025, 1, 3), status=TripStatus.PAST)
        service = DayWeightService(make_workspace(trips=[trip]))

        assert service.calculate_trip_weight(trip, 2024) == 2
        assert service.calculate_trip_weight(trip, 2025) == 3
