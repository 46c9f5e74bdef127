"""Diagnostics for a misconfigured installation.

Each check returns a status dict (``status`` is ``"SUCCESS"`` or
``"ERROR"``) and logs what it found. Checks never raise.
"""

import logging
import sqlite3

from . import db, storage
from .config import Config
from .errors import InvoiceError
from .properties import InvoiceSettings
from .spreadsheet import open_spreadsheet

logger = logging.getLogger("seikyu.troubleshoot")


def check_work_log(config: Config, settings: InvoiceSettings) -> dict:
    """Open the work-log workbook and look for the work-log sheet."""
    try:
        workbook = open_spreadsheet(config, settings.work_log_path, data_only=True)
    except (InvoiceError, OSError) as e:
        logger.error("Could not open work log %s: %s", settings.work_log_path, e)
        return {"status": "ERROR", "message": f"Error: {e}"}

    names = workbook.sheet_names()
    logger.info("Opened work log %s; sheets: %s", workbook.name, ", ".join(names))

    if settings.work_log_sheet not in names:
        logger.warning("Work-log sheet %r not found", settings.work_log_sheet)
        return {
            "status": "ERROR",
            "message": (
                f"Work-log sheet {settings.work_log_sheet!r} not found. "
                f"Available sheets: {', '.join(names)}"
            ),
            "available_sheets": names,
        }

    sheet = workbook.sheet(settings.work_log_sheet)
    logger.info(
        "Work-log sheet found: %d rows x %d columns",
        sheet.max_row, sheet.max_column,
    )
    return {
        "status": "SUCCESS",
        "message": "Work-log sheet is accessible.",
        "sheet_name": sheet.title,
        "row_count": sheet.max_row,
        "column_count": sheet.max_column,
    }


def check_properties(conn: sqlite3.Connection) -> dict[str, str]:
    """Every stored property, as ``{key: value}``."""
    result = {}
    for prop in db.prop_list(conn):
        logger.info("%s: %s", prop["key"], prop["value"])
        result[prop["key"]] = prop["value"]
    if not result:
        logger.info("No properties stored; defaults are in effect")
    return result


def check_file_access(config: Config, path: str) -> dict:
    """Whether ``path`` can be reached, with its size and modification time."""
    try:
        info = storage.stat(config, path)
    except (InvoiceError, OSError) as e:
        logger.error("Cannot access %s: %s", path, e)
        return {"status": "ERROR", "message": f"File access error: {e}"}

    logger.info(
        "Access to %s OK (size=%s, modified=%s)",
        info["name"], info["size"], info["modified"],
    )
    return {"status": "SUCCESS", **info}
