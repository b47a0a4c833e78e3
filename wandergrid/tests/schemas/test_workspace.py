"""Tests for workspace snapshot schemas."""

from datetime import date

from wandergrid.schemas.workspace import (
    Accrual,
    CarryOverRule,
    EntitlementType,
    PublicHoliday,
    Trip,
    User,
)


class TestLenientRecords:
    """Tests that sparse stored records still load."""

    def test_null_text_becomes_empty(self):
        """Test null names and locations load as empty strings."""
        trip = Trip(name=None, location=None, startDate="2024-03-04")

        assert trip.name == ""
        assert trip.location == ""
        assert trip.start_date == date(2024, 3, 4)
        assert PublicHoliday(name=None, date="2024-01-01").name == ""
        assert User(id="u1", name=None).name == ""
        assert EntitlementType(id="e1", name=None, category=None).name == ""

    def test_carry_over_cap_is_clamped(self):
        """Test a missing or negative carry-over cap means nothing carries."""
        assert CarryOverRule(maxDays=-3).max_days == 0
        assert CarryOverRule(maxDays=None).max_days == 0
        assert CarryOverRule(maxDays=4).max_days == 4

    def test_null_accrual_amount(self):
        """Test a null accrual amount grants nothing."""
        assert Accrual(amount=None).amount == 0

    def test_unreadable_holiday_date(self):
        """Test an unparseable holiday date loads as missing."""
        assert PublicHoliday(name="Broken", date="not-a-date").date is None
