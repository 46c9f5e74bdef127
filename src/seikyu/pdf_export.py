"""PDF export of one invoice sheet.

The primary path posts a print-ready copy of the workbook (only the output
sheet visible, fit to one page width, no gridlines, no headers or footers)
to an authenticated LibreOffice conversion service (Gotenberg-compatible
``/forms/libreoffice/convert`` route). If that fails, or no service is
configured, the raw document is exported with the local LibreOffice.
"""

import logging

import httpx

from . import office
from .config import Config
from .errors import TransientIOError
from .spreadsheet import Spreadsheet

logger = logging.getLogger("seikyu.pdf_export")

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_CONVERT_ROUTE = "/forms/libreoffice/convert"


def _export_via_service(config: Config, data: bytes, filename: str) -> bytes:
    """POST the workbook to the conversion service and return the PDF bytes."""
    url = f"{config.converter.url.rstrip('/')}{_CONVERT_ROUTE}"
    auth = None
    if config.converter.username:
        auth = (config.converter.username, config.converter.password)

    response = httpx.post(
        url,
        files={"files": (filename, data, XLSX_MIME)},
        data={"landscape": "false"},
        auth=auth,
        timeout=config.converter.timeout,
    )
    response.raise_for_status()
    if not response.content.startswith(b"%PDF"):
        raise TransientIOError(
            f"Conversion service returned non-PDF content ({response.headers.get('content-type', 'unknown')})"
        )
    return response.content


def export_sheet_pdf(config: Config, workbook: Spreadsheet, sheet_name: str) -> bytes:
    """Render ``sheet_name`` of ``workbook`` to PDF bytes."""
    sheet_id = workbook.sheet_id(sheet_name)

    service_error: Exception | None = None
    if config.converter.url:
        try:
            prepared = workbook.single_sheet_print_copy(sheet_name)
            pdf = _export_via_service(config, prepared, workbook.name)
            logger.info(
                "Exported sheet %s (id %d) of %s via conversion service (%d bytes)",
                sheet_name, sheet_id, workbook.path, len(pdf),
            )
            return pdf
        except (httpx.HTTPError, TransientIOError) as e:
            service_error = e
            logger.warning("Conversion service export failed, falling back to raw export: %s", e)
    else:
        logger.debug("No conversion service configured, using raw export")

    try:
        pdf = office.export_pdf(config, workbook.to_bytes(), workbook.name)
    except TransientIOError as e:
        if service_error is not None:
            raise TransientIOError(
                f"PDF export failed: conversion service: {service_error}; raw export: {e}"
            ) from e
        raise
    logger.info("Exported %s with local LibreOffice (%d bytes)", workbook.path, len(pdf))
    return pdf
