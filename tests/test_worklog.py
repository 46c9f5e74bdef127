"""Tests for seikyu.worklog module."""

from dataclasses import replace
from datetime import date, datetime

import pytest

from seikyu.errors import NotFoundError
from seikyu.period import BillingPeriod
from seikyu.worklog import (
    WorkLogEntry,
    calculate_total_hours,
    fetch_period_entries,
    filter_entries_by_period,
    parse_row,
    parse_rows,
    read_work_log,
)

from conftest import WORK_LOG_HEADER


class TestParseRow:
    def test_full_row(self):
        entry = parse_row((7, date(2025, 5, 2), 3.5, "設計", datetime(2025, 5, 2, 18, 0), None))
        assert entry.id == "7"
        assert entry.date == date(2025, 5, 2)
        assert entry.hours == 3.5
        assert entry.description == "設計"
        assert entry.created_at == datetime(2025, 5, 2, 18, 0)
        assert entry.updated_at is None

    def test_datetime_cell_becomes_date(self):
        entry = parse_row((1, datetime(2025, 5, 2, 10, 30), 1, "", None, None))
        assert entry.date == date(2025, 5, 2)

    @pytest.mark.parametrize("value", ["2025-05-02", "2025/05/02", "2025/05/02 10:30"])
    def test_string_dates(self, value):
        assert parse_row((1, value, 1, "", None, None)).date == date(2025, 5, 2)

    def test_excel_serial_date(self):
        # 45779 is 2025-05-02 in the 1900 date system
        assert parse_row((1, 45779, 1, "", None, None)).date == date(2025, 5, 2)

    def test_invalid_date_is_none(self):
        assert parse_row((1, "not a date", 1, "", None, None)).date is None

    def test_blank_hours_count_as_zero(self):
        assert parse_row((1, date(2025, 5, 2), None, "", None, None)).hours == 0.0

    def test_numeric_string_hours(self):
        assert parse_row((1, date(2025, 5, 2), "2.5", "", None, None)).hours == 2.5

    def test_non_numeric_hours_skipped(self):
        assert parse_row((1, date(2025, 5, 2), "two", "", None, None)) is None

    def test_blank_row_skipped(self):
        assert parse_row((None, None, None, None, None, None)) is None
        assert parse_row(()) is None

    def test_short_row(self):
        entry = parse_row((1, date(2025, 5, 2), 2))
        assert entry.hours == 2.0
        assert entry.description == ""


class TestParseRows:
    def test_skips_header(self):
        rows = [WORK_LOG_HEADER, (1, date(2025, 5, 2), 4, "", None, None)]
        entries = parse_rows(rows)
        assert len(entries) == 1
        assert entries[0].id == "1"

    def test_header_only(self):
        assert parse_rows([WORK_LOG_HEADER]) == []

    def test_empty(self):
        assert parse_rows([]) == []


class TestFilterEntriesByPeriod:
    def _entry(self, day, hours=1.0):
        return WorkLogEntry(id="x", date=day, hours=hours)

    def test_keeps_only_matching_month(self):
        entries = [
            self._entry(date(2025, 5, 1)),
            self._entry(date(2025, 5, 31)),
            self._entry(date(2025, 4, 30)),
            self._entry(date(2025, 6, 1)),
            self._entry(date(2024, 5, 15)),
        ]
        result = filter_entries_by_period(entries, BillingPeriod(2025, 5))
        assert [e.date for e in result] == [date(2025, 5, 1), date(2025, 5, 31)]

    def test_drops_undated_entries(self):
        entries = [self._entry(None), self._entry(date(2025, 5, 3))]
        assert len(filter_entries_by_period(entries, BillingPeriod(2025, 5))) == 1


class TestCalculateTotalHours:
    def test_sum(self):
        entries = [WorkLogEntry("1", date(2025, 5, 1), 4), WorkLogEntry("2", date(2025, 5, 2), 5.5)]
        assert calculate_total_hours(entries) == 9.5

    def test_empty_is_zero(self):
        assert calculate_total_hours([]) == 0

    def test_negative_hours_not_validated(self):
        entries = [WorkLogEntry("1", date(2025, 5, 1), 4), WorkLogEntry("2", date(2025, 5, 2), -1)]
        assert calculate_total_hours(entries) == 3


class TestReadWorkLog:
    def test_reads_all_entries(self, nc_tree, settings):
        entries = read_work_log(nc_tree, settings)
        assert len(entries) == 4

    def test_fetch_period_entries(self, nc_tree, settings):
        entries = fetch_period_entries(nc_tree, settings, BillingPeriod(2025, 5))
        assert len(entries) == 3
        assert calculate_total_hours(entries) == 12

    def test_missing_sheet(self, nc_tree, settings):
        with pytest.raises(NotFoundError) as exc_info:
            read_work_log(nc_tree, replace(settings, work_log_sheet="Sheet9"))
        assert "作業記録" in str(exc_info.value)

    def test_missing_file(self, nc_tree, settings):
        with pytest.raises(NotFoundError):
            read_work_log(nc_tree, replace(settings, work_log_path="/Invoices/missing.xlsx"))
