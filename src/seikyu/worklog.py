"""Work-log spreadsheet: reading entries and aggregating hours for a period.

The work-log sheet has a header row followed by one row per entry with the
columns id, date, hours, description, created-at, updated-at.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

from openpyxl.utils.datetime import from_excel

from .config import Config
from .period import BillingPeriod
from .properties import InvoiceSettings
from .spreadsheet import open_spreadsheet

logger = logging.getLogger("seikyu.worklog")

COL_ID = 0
COL_DATE = 1
COL_HOURS = 2
COL_DESCRIPTION = 3
COL_CREATED = 4
COL_UPDATED = 5

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y-%m-%d %H:%M:%S", "%Y/%m/%d %H:%M:%S", "%Y/%m/%d %H:%M")


@dataclass
class WorkLogEntry:
    id: str
    date: date | None  # None when the cell could not be parsed
    hours: float
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _parse_datetime(value: Any) -> datetime | None:
    """Best-effort conversion of a cell value to a datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Excel serial date in a cell without a date number format
        try:
            return from_excel(value)
        except (ValueError, OverflowError):
            return None
    if isinstance(value, str):
        text = value.strip()
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _parse_date(value: Any) -> date | None:
    parsed = _parse_datetime(value)
    return parsed.date() if parsed else None


def _cell(row: tuple, index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_row(row: tuple) -> WorkLogEntry | None:
    """Turn a sheet row into an entry. Returns None for blank or unusable rows."""
    if not row or all(v is None or v == "" for v in row):
        return None

    raw_hours = _cell(row, COL_HOURS)
    if raw_hours is None or raw_hours == "":
        hours = 0.0
    else:
        try:
            hours = float(raw_hours)
        except (TypeError, ValueError):
            logger.warning("Skipping work-log row %r: hours %r is not a number", _cell(row, COL_ID), raw_hours)
            return None

    raw_id = _cell(row, COL_ID)
    description = _cell(row, COL_DESCRIPTION)
    return WorkLogEntry(
        id="" if raw_id is None else str(raw_id),
        date=_parse_date(_cell(row, COL_DATE)),
        hours=hours,
        description="" if description is None else str(description),
        created_at=_parse_datetime(_cell(row, COL_CREATED)),
        updated_at=_parse_datetime(_cell(row, COL_UPDATED)),
    )


def parse_rows(rows: Iterable[tuple]) -> list[WorkLogEntry]:
    """Parse all rows of the sheet, skipping the header row."""
    entries = []
    for row in list(rows)[1:]:
        entry = parse_row(row)
        if entry is not None:
            entries.append(entry)
    return entries


def filter_entries_by_period(
    entries: Iterable[WorkLogEntry],
    period: BillingPeriod,
) -> list[WorkLogEntry]:
    """Entries whose date falls in the period. Undated entries are dropped."""
    filtered = []
    for entry in entries:
        if entry.date is None:
            logger.debug("Excluding work-log entry %r with invalid date", entry.id)
            continue
        if entry.date.year == period.year and entry.date.month == period.month:
            filtered.append(entry)
    return filtered


def calculate_total_hours(entries: Iterable[WorkLogEntry]) -> float:
    """Sum of hours. Negative values are not validated."""
    return sum((entry.hours for entry in entries), 0.0)


def read_work_log(config: Config, settings: InvoiceSettings) -> list[WorkLogEntry]:
    """Read every entry from the configured work-log sheet."""
    workbook = open_spreadsheet(config, settings.work_log_path, data_only=True)
    sheet = workbook.sheet(settings.work_log_sheet)
    return parse_rows(sheet.iter_rows(values_only=True))


def fetch_period_entries(
    config: Config,
    settings: InvoiceSettings,
    period: BillingPeriod,
) -> list[WorkLogEntry]:
    entries = read_work_log(config, settings)
    selected = filter_entries_by_period(entries, period)
    logger.info(
        "Work log %s: %d entries, %d in %s",
        settings.work_log_path, len(entries), len(selected), period,
    )
    return selected
