"""Monthly invoice pipeline.

One pass per invocation: fetch the period's work-log entries, total the
hours, duplicate the invoice template, write the computed values, read the
amount back from the template's formula, export the output sheet to PDF,
file the PDF, archive the working document, and notify.

Steps run strictly in order; the first failure aborts the rest. Nothing is
rolled back, so a working document duplicated before a later failure stays
in the work folder.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

from . import db, storage
from .config import Config
from .errors import DataError, InvoiceError
from .notifications import send_notification
from .pdf_export import export_sheet_pdf
from .period import BillingPeriod
from .properties import InvoiceSettings, get_property, resolve_settings
from .spreadsheet import Spreadsheet, duplicate, open_spreadsheet
from .worklog import calculate_total_hours, fetch_period_entries

logger = logging.getLogger("seikyu.invoice")

WORKING_DOCUMENT_PREFIX = "請求書_"


def _now(tz=None):
    """Current time; thin wrapper for testability."""
    return datetime.now(tz)


def business_tz(config: Config) -> ZoneInfo:
    """The configured business timezone (UTC if unknown)."""
    try:
        return ZoneInfo(config.timezone)
    except Exception:
        logger.warning("Unknown timezone %r, using UTC", config.timezone)
        return ZoneInfo("UTC")


def business_today(config: Config) -> date:
    """Today's date in the configured business timezone."""
    return _now(business_tz(config)).date()


@dataclass
class InvoiceDraft:
    """The per-run copy of the template and the values computed for it."""
    path: str
    period: BillingPeriod
    total_hours: float
    amount: Any = None


@dataclass
class InvoiceResult:
    ok: bool
    period: str
    url: str | None = None
    pdf_name: str | None = None
    pdf_path: str | None = None
    archive_path: str | None = None
    total_hours: float | None = None
    amount: Any = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def message(self) -> str:
        if self.ok:
            return self.url or ""
        return f"Error: {self.error}"


def format_amount(amount: Any) -> str:
    """Amount as it appears in the PDF file name (no trailing ``.0``)."""
    if isinstance(amount, bool):
        return str(amount)
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    if isinstance(amount, Decimal) and amount == amount.to_integral_value():
        return str(int(amount))
    return str(amount).strip()


def working_document_name(period: BillingPeriod) -> str:
    return f"{WORKING_DOCUMENT_PREFIX}{period.invoice_number}.xlsx"


def pdf_filename(period: BillingPeriod, amount: Any, payee_name: str) -> str:
    return f"{period.invoice_number}_{format_amount(amount)}_{payee_name}.pdf"


# --- Pipeline steps ---


def duplicate_invoice_template(
    config: Config, settings: InvoiceSettings, period: BillingPeriod,
) -> str:
    path = duplicate(
        config, settings.template_path, settings.work_folder, working_document_name(period),
    )
    logger.info("Duplicated template %s -> %s", settings.template_path, path)
    return path


def set_invoice_values(
    config: Config, settings: InvoiceSettings, draft: InvoiceDraft,
) -> Spreadsheet:
    """Write invoice date, invoice number and total hours into the working document."""
    workbook = open_spreadsheet(config, draft.path)
    sheet = settings.invoice_sheet
    workbook.set_value(sheet, settings.cell_invoice_date, draft.period.invoice_date)
    workbook.set_value(sheet, settings.cell_invoice_number, draft.period.invoice_number)
    hours_format = f'General"{settings.hours_unit}"' if settings.hours_unit else None
    workbook.set_value(sheet, settings.cell_work_hours, draft.total_hours, number_format=hours_format)
    workbook.save(config)
    return workbook


def get_invoice_amount(config: Config, settings: InvoiceSettings, workbook: Spreadsheet) -> Any:
    """Total amount as evaluated by the template's own formula."""
    amount = workbook.computed_value(config, settings.invoice_sheet, settings.cell_total_amount)
    if amount is None or amount == "":
        raise DataError(
            f"Total amount cell {settings.invoice_sheet}!{settings.cell_total_amount} "
            f"has no computed value in {workbook.path}"
        )
    return amount


def save_invoice_pdf(
    config: Config, settings: InvoiceSettings, draft: InvoiceDraft, pdf: bytes,
) -> str:
    name = pdf_filename(draft.period, draft.amount, settings.payee_name)
    return storage.write_file(config, settings.output_folder, name, pdf)


def archive_working_document(config: Config, settings: InvoiceSettings, path: str) -> str:
    return storage.move_file(config, path, settings.archive_folder)


def run_pipeline(
    config: Config, settings: InvoiceSettings, period: BillingPeriod,
) -> InvoiceResult:
    """Steps 1-8. Raises on the first failing step."""
    entries = fetch_period_entries(config, settings, period)
    total_hours = calculate_total_hours(entries)
    logger.info("Total hours for %s: %s (%d entries)", period, total_hours, len(entries))

    draft = InvoiceDraft(
        path=duplicate_invoice_template(config, settings, period),
        period=period,
        total_hours=total_hours,
    )
    workbook = set_invoice_values(config, settings, draft)
    draft.amount = get_invoice_amount(config, settings, workbook)

    pdf = export_sheet_pdf(config, workbook, settings.output_sheet)
    pdf_path = save_invoice_pdf(config, settings, draft, pdf)
    archive_path = archive_working_document(config, settings, draft.path)

    return InvoiceResult(
        ok=True,
        period=str(period),
        url=storage.file_url(config, pdf_path),
        pdf_name=pdf_path.rsplit("/", 1)[-1],
        pdf_path=pdf_path,
        archive_path=archive_path,
        total_hours=total_hours,
        amount=draft.amount,
    )


def _success_body(result: InvoiceResult) -> str:
    return (
        f"The invoice for {result.period} has been created.\n\n"
        f"File: {result.pdf_name}\n"
        f"URL: {result.url}\n"
        f"Total hours: {result.total_hours}\n"
        f"Amount: {format_amount(result.amount)}\n"
        f"Working document archived at: {result.archive_path}\n"
    )


def _failure_body(result: InvoiceResult) -> str:
    return (
        f"Invoice creation for {result.period} failed.\n\n"
        f"Error ({result.error_kind}): {result.error}\n"
    )


def _fallback_recipient(config: Config) -> str:
    """NOTIFICATION_EMAIL read on its own, for runs whose settings never resolved."""
    try:
        with db.get_db(config.db_path) as conn:
            return get_property(conn, "NOTIFICATION_EMAIL")
    except sqlite3.Error as e:
        logger.error("Cannot read notification recipient: %s", e)
        return ""


def create_invoice(
    config: Config,
    period: BillingPeriod | None = None,
    *,
    today: date | None = None,
) -> InvoiceResult:
    """Create the invoice for ``period`` (default: the month containing today).

    Never raises: failures come back as an error-tagged ``InvoiceResult``
    after the failure notification has been sent.
    """
    if period is None:
        period = BillingPeriod.containing(today or business_today(config))

    settings: InvoiceSettings | None = None
    try:
        with db.get_db(config.db_path) as conn:
            settings = resolve_settings(conn)
        result = run_pipeline(config, settings, period)
    except InvoiceError as e:
        logger.error("Invoice creation for %s failed (%s): %s", period, e.kind, e)
        result = InvoiceResult(ok=False, period=str(period), error=str(e), error_kind=e.kind)
    except Exception as e:
        logger.exception("Unexpected error creating invoice for %s", period)
        result = InvoiceResult(ok=False, period=str(period), error=str(e), error_kind="unexpected")

    recipient = settings.notification_email if settings else _fallback_recipient(config)
    if result.ok:
        logger.info("Created invoice PDF %s", result.pdf_name)
        send_notification(
            config, recipient, f"Invoice created: {result.period}", _success_body(result),
        )
    else:
        send_notification(
            config, recipient, f"Invoice creation failed: {result.period}", _failure_body(result),
        )
    return result
