"""Shared test fixtures for seikyu tests."""

from datetime import date
from io import BytesIO

import pytest
from openpyxl import Workbook

from seikyu import db
from seikyu.config import Config
from seikyu.properties import PROPERTY_DEFAULTS, InvoiceSettings


@pytest.fixture
def db_path(tmp_path):
    """Initialize a real SQLite database using schema.sql and return its path."""
    path = tmp_path / "test.db"
    db.init_db(path)
    return path


@pytest.fixture
def db_conn(db_path):
    """Yield a database connection with row factory set."""
    with db.get_db(db_path) as conn:
        yield conn


@pytest.fixture
def make_config(tmp_path):
    """Factory fixture that creates Config instances with tmp paths."""
    def _make_config(**overrides):
        mount_path = tmp_path / "mount"
        mount_path.mkdir(exist_ok=True)

        defaults = {
            "db_path": tmp_path / "test.db",
            "temp_dir": tmp_path / "temp",
            "nextcloud_mount_path": mount_path,
        }
        defaults.update(overrides)
        return Config(**defaults)
    return _make_config


@pytest.fixture
def settings():
    """InvoiceSettings built from the baked-in defaults."""
    return InvoiceSettings(
        work_log_path=PROPERTY_DEFAULTS["WORK_LOG_FILE_ID"],
        work_log_sheet=PROPERTY_DEFAULTS["WORK_LOG_SHEET_NAME"],
        template_path=PROPERTY_DEFAULTS["INVOICE_TEMPLATE_ID"],
        work_folder=PROPERTY_DEFAULTS["INVOICE_WORK_FOLDER_ID"],
        output_folder=PROPERTY_DEFAULTS["INVOICE_OUTPUT_FOLDER_ID"],
        archive_folder=PROPERTY_DEFAULTS["ARCHIVE_FOLDER_ID"],
        payee_name=PROPERTY_DEFAULTS["PAYEE_NAME"],
        notification_email="owner@example.com",
        invoice_sheet=PROPERTY_DEFAULTS["INVOICE_SHEET_NAME"],
        output_sheet=PROPERTY_DEFAULTS["OUTPUT_SHEET_NAME"],
        cell_invoice_date=PROPERTY_DEFAULTS["CELL_INVOICE_DATE"],
        cell_invoice_number=PROPERTY_DEFAULTS["CELL_INVOICE_NUMBER"],
        cell_work_hours=PROPERTY_DEFAULTS["CELL_WORK_HOURS"],
        cell_total_amount=PROPERTY_DEFAULTS["CELL_TOTAL_AMOUNT"],
        hours_unit=PROPERTY_DEFAULTS["HOURS_UNIT"],
    )


WORK_LOG_HEADER = ("ID", "日付", "時間", "内容", "作成日時", "更新日時")


def workbook_bytes(sheets: dict[str, list[tuple]]) -> bytes:
    """Build an xlsx in memory: ``{sheet_name: [row, ...]}``."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def template_bytes() -> bytes:
    """Invoice template with an input sheet and a print sheet that mirrors it."""
    wb = Workbook()
    ws = wb.active
    ws.title = "シート1"
    ws["A1"] = "請求書"
    ws["C33"] = 0
    ws["F30"] = "=C33*11000"
    out = wb.create_sheet("ダウンロード用")
    out["A1"] = "請求書"
    out["E4"] = "=シート1!E4"
    out["F30"] = "=シート1!F30"
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_entries():
    """Work-log rows: three in May 2025 totalling 12 hours, one in April."""
    return [
        WORK_LOG_HEADER,
        (1, date(2025, 5, 2), 4, "設計", None, None),
        (2, date(2025, 5, 15), 5.5, "実装", None, None),
        (3, "2025/05/28", 2.5, "レビュー", None, None),
        (4, date(2025, 4, 30), 8, "前月分", None, None),
    ]


@pytest.fixture
def nc_tree(make_config, sample_entries):
    """A mounted Nextcloud tree with the invoice folders, template and work log."""
    config = make_config()
    root = config.nextcloud_mount_path / "Invoices"
    for sub in ("templates", "work", "output", "archive"):
        (root / sub).mkdir(parents=True, exist_ok=True)
    (root / "templates" / "請求書テンプレート.xlsx").write_bytes(template_bytes())
    (root / "作業記録.xlsx").write_bytes(workbook_bytes({"作業記録": sample_entries}))
    return config
