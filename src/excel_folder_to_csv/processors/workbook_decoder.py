"""Workbook decoding for the Excel folder to CSV converter.

This module turns raw spreadsheet bytes into a Workbook:
- Office Open XML workbooks (.xlsx) are read with openpyxl
- Legacy BIFF workbooks (.xls) are read with xlrd
- The container type is detected from the file content, not its name
- Every sheet becomes a grid of typed cell values trimmed to its used range
"""

import io
import zipfile
from datetime import time as dt_time
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
import pandas as pd
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from excel_folder_to_csv.models.data_models import (
    InputConfig,
    ParseError,
    Workbook,
)
from excel_folder_to_csv.utils.logger import get_processing_logger
from excel_folder_to_csv.utils.logging_decorators import log_operation, operation_context


ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06")
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def trim_to_used_range(rows: Sequence[Sequence[Any]]) -> List[List[Any]]:
    """Cut a grid down to the rectangle spanned by its non-empty cells.

    Leading and trailing rows and columns in which every cell is empty are
    dropped, so the result starts at the top-left used cell. Rows are padded
    to a common width so the result is rectangular.
    """
    first_row = first_col = None
    last_row = last_col = -1
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            if _is_empty(value):
                continue
            if first_row is None:
                first_row = r
            if first_col is None or c < first_col:
                first_col = c
            last_row = r
            if c > last_col:
                last_col = c

    if first_row is None:
        return []

    width = last_col + 1 - first_col
    trimmed = []
    for row in rows[first_row:last_row + 1]:
        cells = list(row[first_col:last_col + 1])
        cells.extend([None] * (width - len(cells)))
        trimmed.append(cells)
    return trimmed


def grid_to_frame(rows: List[List[Any]]) -> pd.DataFrame:
    """Build an object-dtype DataFrame that keeps cell values untouched."""
    if not rows:
        return pd.DataFrame(dtype=object)
    return pd.DataFrame(rows, dtype=object)


class WorkbookDecoder:
    """Decodes spreadsheet bytes into Workbook objects.

    Example:
        >>> decoder = WorkbookDecoder()
        >>> workbook = decoder.decode(path.read_bytes(), "reports/q1.xlsx")
        >>> workbook.sheet_names
        ['Summary', 'Detail']
    """

    def __init__(self, input_config: Optional[InputConfig] = None):
        """Initialize workbook decoder.

        Args:
            input_config: Input limits (max file size)
        """
        self.input_config = input_config or InputConfig()
        self.logger = get_processing_logger(__name__)

    @log_operation("decode_workbook", log_args=False)
    def decode(self, data: bytes, source_name: str) -> Workbook:
        """Decode raw spreadsheet bytes.

        Args:
            data: Raw file content
            source_name: Name used in errors and logs (usually the relative path)

        Returns:
            Workbook with one grid per sheet

        Raises:
            ParseError: If the bytes are not a recognized spreadsheet container
        """
        with operation_context(
            "workbook_decoding",
            self.logger,
            source_name=source_name,
            size_bytes=len(data)
        ) as metrics:
            limit = self.input_config.max_file_size_bytes
            if limit is not None and len(data) > limit:
                raise ParseError(
                    f"File too large: {len(data) / (1024 * 1024):.1f}MB > "
                    f"{self.input_config.max_file_size_mb}MB",
                    file_path=source_name
                )

            container = self.detect_container(data)
            if container is None:
                raise ParseError(
                    "Unsupported file format: content is neither an Office Open XML "
                    "nor a legacy Excel workbook",
                    file_path=source_name
                )

            try:
                if container == "xlsx":
                    sheets = self._read_xlsx(data)
                else:
                    sheets = self._read_xls(data)
            except ParseError:
                raise
            except (InvalidFileException, zipfile.BadZipFile, xlrd.XLRDError) as e:
                raise ParseError(str(e) or type(e).__name__, file_path=source_name) from e
            except Exception as e:
                # Damaged containers surface as KeyError, ValueError or struct.error
                raise ParseError(
                    f"Corrupt or unsupported workbook ({type(e).__name__}: {e})",
                    file_path=source_name
                ) from e

            if not sheets:
                raise ParseError("Workbook contains no sheets", file_path=source_name)

            workbook = Workbook(
                source_name=source_name,
                sheet_names=list(sheets),
                sheets=sheets
            )

            if metrics:
                metrics.add_metadata("container", container)
                metrics.add_metadata("sheet_count", workbook.sheet_count)

            self.logger.debug(
                f"Decoded {source_name} ({container}): {workbook.sheet_count} sheet(s) "
                f"{workbook.sheet_names}",
                extra={"file_path": source_name}
            )
            return workbook

    @staticmethod
    def detect_container(data: bytes) -> Optional[str]:
        """Identify the workbook container from its leading bytes.

        Returns:
            "xlsx", "xls", or None for anything else
        """
        if data.startswith(ZIP_SIGNATURES):
            return "xlsx"
        if data.startswith(OLE2_SIGNATURE):
            return "xls"
        return None

    def _read_xlsx(self, data: bytes) -> Dict[str, pd.DataFrame]:
        """Read an Office Open XML workbook with openpyxl."""
        workbook = openpyxl.load_workbook(
            io.BytesIO(data), read_only=False, data_only=True, keep_links=False
        )
        try:
            sheets: Dict[str, pd.DataFrame] = {}
            for sheet_name in workbook.sheetnames:
                worksheet = workbook[sheet_name]
                if not hasattr(worksheet, "iter_rows"):
                    # Chartsheets carry no cells
                    sheets[sheet_name] = grid_to_frame([])
                    continue

                rows = [list(row) for row in worksheet.iter_rows(values_only=True)]
                sheets[sheet_name] = grid_to_frame(trim_to_used_range(rows))
            return sheets
        finally:
            workbook.close()

    def _read_xls(self, data: bytes) -> Dict[str, pd.DataFrame]:
        """Read a legacy BIFF workbook with xlrd."""
        book = xlrd.open_workbook(file_contents=data, on_demand=False)
        try:
            sheets: Dict[str, pd.DataFrame] = {}
            for sheet in book.sheets():
                rows = [
                    [self._xls_cell_value(cell, book.datemode) for cell in sheet.row(r)]
                    for r in range(sheet.nrows)
                ]
                sheets[sheet.name] = grid_to_frame(trim_to_used_range(rows))
            return sheets
        finally:
            book.release_resources()

    @staticmethod
    def _xls_cell_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
        """Convert an xlrd cell to a typed Python value."""
        ctype = cell.ctype

        if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
            return None

        if ctype == xlrd.XL_CELL_BOOLEAN:
            return bool(cell.value)

        if ctype == xlrd.XL_CELL_ERROR:
            return xlrd.error_text_from_code.get(cell.value, "#ERR!")

        if ctype == xlrd.XL_CELL_DATE:
            try:
                if 0 <= cell.value < 1:
                    _, _, _, hour, minute, second = xlrd.xldate_as_tuple(cell.value, datemode)
                    return dt_time(hour, minute, second)
                return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
            except (xlrd.xldate.XLDateError, ValueError, OverflowError):
                return cell.value

        return cell.value
