"""xlsx documents stored in Nextcloud, edited with openpyxl."""

import logging
import zipfile
from io import BytesIO
from pathlib import PurePosixPath
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.header_footer import HeaderFooter
from openpyxl.worksheet.properties import PageSetupProperties
from openpyxl.worksheet.worksheet import Worksheet

from . import office, storage
from .config import Config
from .errors import DataError, NotFoundError

logger = logging.getLogger("seikyu.spreadsheet")


def _load(data: bytes, path: str, data_only: bool = False) -> Workbook:
    try:
        return load_workbook(BytesIO(data), data_only=data_only)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise DataError(f"{path} is not a readable xlsx workbook: {e}") from e


class Spreadsheet:
    """An open workbook plus the storage path it came from."""

    def __init__(self, path: str, workbook: Workbook):
        self.path = path
        self.workbook = workbook

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    def sheet_names(self) -> list[str]:
        return list(self.workbook.sheetnames)

    def sheet(self, name: str) -> Worksheet:
        if name not in self.workbook.sheetnames:
            raise NotFoundError(f"Sheet in {self.path}", name, self.sheet_names())
        return self.workbook[name]

    def sheet_id(self, name: str) -> int:
        """0-based position of the sheet in workbook order."""
        self.sheet(name)
        return self.workbook.sheetnames.index(name)

    def get_value(self, sheet_name: str, address: str) -> Any:
        return self.sheet(sheet_name)[address].value

    def set_value(
        self,
        sheet_name: str,
        address: str,
        value: Any,
        number_format: str | None = None,
    ) -> None:
        cell = self.sheet(sheet_name)[address]
        cell.value = value
        if number_format:
            cell.number_format = number_format

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.workbook.save(buffer)
        return buffer.getvalue()

    def save(self, config: Config) -> None:
        """Write the workbook back to its storage path."""
        storage.replace_file(config, self.path, self.to_bytes())
        logger.debug("Saved %s", self.path)

    def computed_value(self, config: Config, sheet_name: str, address: str) -> Any:
        """Value of a cell after LibreOffice has evaluated the workbook's formulas."""
        self.sheet(sheet_name)
        recalculated = office.recalculate(config, self.to_bytes(), self.name)
        workbook = _load(recalculated, self.path, data_only=True)
        return workbook[sheet_name][address].value

    def single_sheet_print_copy(self, sheet_name: str) -> bytes:
        """Workbook bytes set up to print only ``sheet_name``.

        Other sheets are hidden (formulas referencing them still evaluate),
        the page fits one width, and gridlines, headers and footers are off.
        """
        self.sheet(sheet_name)
        workbook = _load(self.to_bytes(), self.path)
        for ws in workbook.worksheets:
            if ws.title != sheet_name:
                ws.sheet_state = "hidden"
        target = workbook[sheet_name]
        target.sheet_state = "visible"
        workbook.active = workbook.sheetnames.index(sheet_name)

        target.page_setup.paperSize = target.PAPERSIZE_A4
        target.page_setup.orientation = target.ORIENTATION_PORTRAIT
        target.sheet_properties.pageSetUpPr = PageSetupProperties(fitToPage=True)
        target.page_setup.fitToWidth = 1
        target.page_setup.fitToHeight = 0
        target.print_options.gridLines = False
        target.print_options.headings = False
        target.HeaderFooter = HeaderFooter()

        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()


def open_spreadsheet(config: Config, path: str, data_only: bool = False) -> Spreadsheet:
    """Open a workbook by storage path."""
    data = storage.read_file(config, path)
    return Spreadsheet(path, _load(data, path, data_only=data_only))


def duplicate(config: Config, source: str, folder: str, name: str) -> str:
    """Copy a workbook (typically a template) into ``folder``. Returns the new path."""
    return storage.copy_file(config, source, folder, name)
