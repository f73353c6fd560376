"""Tests for the calendar helpers."""

import pytest
from datetime import date

from budgety.utils.dates import (
    add_months,
    add_years,
    format_month,
    month_days,
    month_range,
    parse_month,
    recent_months,
)


class TestParseMonth:

    def test_parses_first_day(self):
        assert parse_month("2026-02") == date(2026, 2, 1)

    @pytest.mark.parametrize("month", ["2026-13", "2026-1", "26-01", "", "2026/01", "2026-00"])
    def test_rejects_malformed(self, month):
        with pytest.raises(ValueError):
            parse_month(month)

    def test_rejects_last_representable_month(self):
        with pytest.raises(ValueError, match="out of range"):
            parse_month("9999-12")
        assert month_range("9999-11") == (date(9999, 11, 1), date(9999, 12, 1))

    def test_format_round_trip(self):
        assert format_month(date(2026, 11, 30)) == "2026-11"


class TestMonthArithmetic:

    def test_range_is_half_open(self):
        assert month_range("2026-12") == (date(2026, 12, 1), date(2027, 1, 1))

    def test_clamps_to_end_of_shorter_month(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2026, 3, 31), 1) == date(2026, 4, 30)

    def test_negative_months_cross_year(self):
        assert add_months(date(2026, 1, 15), -1) == date(2025, 12, 15)
        assert add_months(date(2026, 3, 31), -13) == date(2025, 2, 28)

    def test_leap_day_plus_one_year(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)

    def test_month_days(self):
        days = month_days("2024-02")
        assert len(days) == 29
        assert days[0] == date(2024, 2, 1)
        assert days[-1] == date(2024, 2, 29)

    def test_recent_months_oldest_first(self):
        assert recent_months(date(2026, 2, 14), 3) == ["2025-12", "2026-01", "2026-02"]
        assert recent_months(date(2026, 2, 14), 1) == ["2026-02"]
