"""Tests for seikyu.scheduling module."""

from datetime import date, datetime, timedelta

import pytest

from seikyu.period import last_day_of_month
from seikyu.scheduling import (
    billing_day,
    is_weekend,
    next_billing_day,
    should_run_today,
    thursday_on_or_before,
    weekday_sun0,
)


def _days_in_month(year, month):
    day = date(year, month, 1)
    while day.month == month:
        yield day
        day += timedelta(days=1)


class TestWeekdayHelpers:
    def test_weekday_sun0(self):
        assert weekday_sun0(date(2025, 6, 1)) == 0  # Sunday
        assert weekday_sun0(date(2025, 6, 5)) == 4  # Thursday
        assert weekday_sun0(date(2025, 6, 7)) == 6  # Saturday

    def test_is_weekend(self):
        assert is_weekend(date(2025, 5, 31))  # Saturday
        assert is_weekend(date(2025, 6, 1))  # Sunday
        assert not is_weekend(date(2025, 6, 2))

    @pytest.mark.parametrize("day,expected", [
        (date(2025, 5, 29), date(2025, 5, 29)),  # Thursday itself
        (date(2025, 5, 30), date(2025, 5, 29)),  # Friday
        (date(2025, 5, 31), date(2025, 5, 29)),  # Saturday
        (date(2025, 6, 1), date(2025, 5, 29)),   # Sunday
        (date(2025, 6, 4), date(2025, 5, 29)),   # Wednesday
    ])
    def test_thursday_on_or_before(self, day, expected):
        assert thursday_on_or_before(day) == expected


class TestBillingDay:
    def test_weekday_month_end_runs_day_before(self):
        # Sep 2025 ends Tuesday 30 -> Monday 29
        assert billing_day(2025, 9) == date(2025, 9, 29)

    def test_saturday_month_end_moves_to_thursday(self):
        # May 2025 ends Saturday 31
        assert billing_day(2025, 5) == date(2025, 5, 29)

    def test_sunday_month_end_moves_to_thursday(self):
        # Aug 2025 ends Sunday 31
        assert billing_day(2025, 8) == date(2025, 8, 28)

    def test_monday_month_end_moves_to_thursday(self):
        # Jun 2025 ends Monday 30, the day before is Sunday
        assert billing_day(2025, 6) == date(2025, 6, 26)

    def test_leap_february(self):
        # Feb 2024 ends Thursday 29 -> Wednesday 28
        assert billing_day(2024, 2) == date(2024, 2, 28)

    def test_billing_day_never_on_weekend(self):
        for year in range(2020, 2031):
            for month in range(1, 13):
                assert not is_weekend(billing_day(year, month))

    def test_billing_day_before_month_end(self):
        for year in range(2020, 2031):
            for month in range(1, 13):
                day = billing_day(year, month)
                assert day.month == month
                assert day < last_day_of_month(year, month)


class TestShouldRunToday:
    def test_exactly_one_run_day_per_month(self):
        for year in range(2020, 2031):
            for month in range(1, 13):
                run_days = [d for d in _days_in_month(year, month) if should_run_today(d)]
                assert len(run_days) == 1, (year, month, run_days)

    def test_never_runs_on_last_day(self):
        for year in range(2020, 2031):
            for month in range(1, 13):
                assert not should_run_today(last_day_of_month(year, month))

    def test_day_before_last_false_when_pulled_to_thursday(self):
        # May 2025: Thursday 29 runs, Friday 30 does not
        assert should_run_today(date(2025, 5, 29))
        assert not should_run_today(date(2025, 5, 30))

    def test_runs_on_thursday_when_day_before_last_is_weekend(self):
        assert should_run_today(date(2025, 6, 26))
        assert not should_run_today(date(2025, 6, 29))

    def test_ordinary_day_before_last(self):
        assert should_run_today(date(2025, 9, 29))
        assert not should_run_today(date(2025, 9, 25))

    def test_mid_month_false(self):
        assert not should_run_today(date(2025, 5, 15))

    def test_accepts_datetime(self):
        assert should_run_today(datetime(2025, 5, 29, 9, 0))


class TestNextBillingDay:
    def test_same_month_when_not_passed(self):
        assert next_billing_day(date(2025, 5, 1)) == date(2025, 5, 29)

    def test_on_billing_day(self):
        assert next_billing_day(date(2025, 5, 29)) == date(2025, 5, 29)

    def test_rolls_to_next_month(self):
        assert next_billing_day(date(2025, 5, 30)) == date(2025, 6, 26)

    def test_rolls_over_year_end(self):
        # Dec 2025 ends Wednesday 31 -> Tuesday 30
        assert next_billing_day(date(2025, 12, 31)) == date(2026, 1, 29)
