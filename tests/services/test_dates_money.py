"""
Tests for calendar arithmetic and money conversions.
"""

from decimal import Decimal

from fincontrol.dates import (
    add_days,
    add_months,
    add_years,
    is_iso_date,
    month_bounds,
    next_from,
)
from fincontrol.money import from_minor, round2, to_minor


class TestDates:

    def test_is_iso_date(self):
        assert is_iso_date("2026-02-28") is True
        assert is_iso_date("2026-02-30") is False
        assert is_iso_date("2026-2-3") is False
        assert is_iso_date(None) is False

    def test_month_end_clamps(self):
        assert add_months("2026-01-31", 1) == "2026-02-28"
        assert add_months("2024-01-31", 1) == "2024-02-29"
        assert add_months("2026-03-31", -1) == "2026-02-28"
        assert add_months("2026-12-15", 1) == "2027-01-15"

    def test_leap_day_plus_one_year(self):
        assert add_years("2024-02-29", 1) == "2025-02-28"

    def test_next_from(self):
        assert next_from("weekly", "2026-12-29") == "2027-01-05"
        assert next_from("biweekly", "2026-10-01") == "2026-10-15"
        assert next_from("yearly", "2026-10-01") == "2027-10-01"
        assert next_from("monthly", "2026-10-31") == "2026-11-30"
        assert next_from("someday", "2026-10-01") == "2026-11-01"

    def test_add_days(self):
        assert add_days("2026-02-28", 1) == "2026-03-01"

    def test_month_bounds(self):
        assert month_bounds(2026, 2) == ("2026-02-01", "2026-02-28")
        assert month_bounds(2024, 2) == ("2024-02-01", "2024-02-29")


class TestMoney:

    def test_to_minor_rounds_half_up(self):
        assert to_minor(Decimal("10.005")) == 1001
        assert to_minor(Decimal("10.004")) == 1000
        assert to_minor("0.1") == 10
        assert to_minor(None) == 0

    def test_from_minor(self):
        assert from_minor(1001) == Decimal("10.01")
        assert str(from_minor(100)) == "1.00"
        assert from_minor(None) == Decimal("0.00")

    def test_round2(self):
        assert round2("2.675") == Decimal("2.68")
        assert round2(Decimal("-1.005")) == Decimal("-1.01")
