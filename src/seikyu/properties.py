"""Invoice settings backed by the property store.

Settings are resolved once per invocation into an ``InvoiceSettings`` value
that is passed to every pipeline step. Each key can be overridden in the
``properties`` table and falls back to the default below when unset.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass

from . import db
from .errors import ConfigurationError

logger = logging.getLogger("seikyu.properties")

PROPERTY_DEFAULTS: dict[str, str] = {
    "WORK_LOG_FILE_ID": "/Invoices/作業記録.xlsx",
    "WORK_LOG_SHEET_NAME": "作業記録",
    "INVOICE_TEMPLATE_ID": "/Invoices/templates/請求書テンプレート.xlsx",
    "INVOICE_WORK_FOLDER_ID": "/Invoices/work",
    "INVOICE_OUTPUT_FOLDER_ID": "/Invoices/output",
    "ARCHIVE_FOLDER_ID": "/Invoices/archive",
    "PAYEE_NAME": "山田太郎",
    "NOTIFICATION_EMAIL": "",
    "INVOICE_SHEET_NAME": "シート1",
    "OUTPUT_SHEET_NAME": "ダウンロード用",
    "CELL_INVOICE_DATE": "E4",
    "CELL_INVOICE_NUMBER": "E5",
    "CELL_WORK_HOURS": "C33",
    "CELL_TOTAL_AMOUNT": "F30",
    "HOURS_UNIT": "時間",
}

_CELL_RE = re.compile(r"^[A-Z]{1,3}[1-9][0-9]*$")


@dataclass(frozen=True)
class InvoiceSettings:
    work_log_path: str
    work_log_sheet: str
    template_path: str
    work_folder: str
    output_folder: str
    archive_folder: str
    payee_name: str
    notification_email: str
    invoice_sheet: str
    output_sheet: str
    cell_invoice_date: str
    cell_invoice_number: str
    cell_work_hours: str
    cell_total_amount: str
    hours_unit: str


def get_property(conn: sqlite3.Connection, key: str, default: str | None = None) -> str:
    """Stored value for ``key``; ``default`` (or the baked-in default) when unset or empty."""
    value = db.prop_get(conn, key)
    if value:
        return value
    if default is not None:
        return default
    return PROPERTY_DEFAULTS.get(key, "")


def set_property(conn: sqlite3.Connection, key: str, value: str) -> None:
    if key not in PROPERTY_DEFAULTS:
        logger.warning("Setting unknown property %s", key)
    db.prop_set(conn, key, value)


def initialize_properties(conn: sqlite3.Connection) -> str:
    """Seed every property with its default. Safe to re-run."""
    for key, value in PROPERTY_DEFAULTS.items():
        db.prop_set(conn, key, value)
    logger.info("Initialized %d properties", len(PROPERTY_DEFAULTS))
    return "Properties initialized"


def _cell(conn: sqlite3.Connection, key: str) -> str:
    address = get_property(conn, key).strip().upper()
    if not _CELL_RE.match(address):
        raise ConfigurationError(f"Invalid cell address for {key}: {address!r}")
    return address


def resolve_settings(conn: sqlite3.Connection) -> InvoiceSettings:
    """Read the property store once and build the settings for this run."""
    return InvoiceSettings(
        work_log_path=get_property(conn, "WORK_LOG_FILE_ID"),
        work_log_sheet=get_property(conn, "WORK_LOG_SHEET_NAME"),
        template_path=get_property(conn, "INVOICE_TEMPLATE_ID"),
        work_folder=get_property(conn, "INVOICE_WORK_FOLDER_ID"),
        output_folder=get_property(conn, "INVOICE_OUTPUT_FOLDER_ID"),
        archive_folder=get_property(conn, "ARCHIVE_FOLDER_ID"),
        payee_name=get_property(conn, "PAYEE_NAME"),
        notification_email=get_property(conn, "NOTIFICATION_EMAIL"),
        invoice_sheet=get_property(conn, "INVOICE_SHEET_NAME"),
        output_sheet=get_property(conn, "OUTPUT_SHEET_NAME"),
        cell_invoice_date=_cell(conn, "CELL_INVOICE_DATE"),
        cell_invoice_number=_cell(conn, "CELL_INVOICE_NUMBER"),
        cell_work_hours=_cell(conn, "CELL_WORK_HOURS"),
        cell_total_amount=_cell(conn, "CELL_TOTAL_AMOUNT"),
        hours_unit=get_property(conn, "HOURS_UNIT"),
    )
