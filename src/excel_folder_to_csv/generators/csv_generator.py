"""CSV text generation for the Excel folder to CSV converter.

This module renders decoded sheet grids as CSV text:
- Every cell is turned into its display text (numbers, booleans, dates)
- Fields are quoted only when they contain a comma, quote or line break
- Rows end with the configured line terminator, including the last one
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import numpy as np
import pandas as pd

from excel_folder_to_csv.models.data_models import CSVConfig, UnknownError
from excel_folder_to_csv.utils.logger import get_processing_logger
from excel_folder_to_csv.utils.logging_decorators import log_operation, operation_context


QUOTE_TRIGGERS = (",", '"', "\r", "\n")


def quote_field(text: str) -> str:
    """Quote a field that contains a comma, a double quote or a line break.

    Inner double quotes are doubled. Every other field is written as is,
    including the empty field.
    """
    if any(trigger in text for trigger in QUOTE_TRIGGERS):
        return '"' + text.replace('"', '""') + '"'
    return text


class CSVGenerator:
    """Serializes sheet grids to CSV text.

    Example:
        >>> generator = CSVGenerator()
        >>> generator.serialize(pd.DataFrame([["a,b", 1.0]], dtype=object))
        '"a,b",1\\n'
    """

    def __init__(self, csv_config: Optional[CSVConfig] = None):
        """Initialize CSV generator.

        Args:
            csv_config: Line terminator and date/time formats
        """
        self.csv_config = csv_config or CSVConfig()
        self.logger = get_processing_logger(__name__)

    @log_operation("serialize_sheet", log_args=False)
    def serialize(self, sheet: pd.DataFrame, sheet_name: Optional[str] = None) -> str:
        """Render a sheet grid as CSV text.

        Args:
            sheet: Object-dtype grid of cell values
            sheet_name: Sheet name used in logs and errors

        Returns:
            CSV text, one line per grid row

        Raises:
            UnknownError: If a cell cannot be rendered
        """
        with operation_context(
            "csv_serialization",
            self.logger,
            sheet_name=sheet_name,
            shape=sheet.shape
        ) as metrics:
            if sheet.empty:
                return ""

            try:
                fields = sheet.map(self.render_cell).map(quote_field)
                terminator = self.csv_config.line_terminator
                text = "".join(
                    ",".join(row) + terminator
                    for row in fields.itertuples(index=False, name=None)
                )
            except (TypeError, ValueError, OverflowError) as e:
                raise UnknownError(
                    f"Failed to serialize sheet '{sheet_name}': {e}"
                ) from e

            if metrics:
                metrics.add_metadata("csv_length", len(text))

            self.logger.debug(
                f"Serialized sheet '{sheet_name}': {sheet.shape[0]:,} rows x "
                f"{sheet.shape[1]} columns",
                extra={"sheet_name": sheet_name}
            )
            return text

    def render_cell(self, value: Any) -> str:
        """Get the display text of a single cell value."""
        if value is None or value is pd.NaT:
            return ""

        if isinstance(value, str):
            return value

        # bool before int: bool is an int subclass
        if isinstance(value, (bool, np.bool_)):
            return "TRUE" if value else "FALSE"

        if isinstance(value, (int, np.integer)):
            return str(int(value))

        if isinstance(value, (float, np.floating)):
            if math.isnan(value):
                return ""
            return np.format_float_positional(value, trim="-")

        if isinstance(value, datetime):
            if value.time() == time(0, 0):
                return value.strftime(self.csv_config.date_format)
            return value.strftime(self.csv_config.datetime_format)

        if isinstance(value, date):
            return value.strftime(self.csv_config.date_format)

        if isinstance(value, time):
            return value.strftime(self.csv_config.time_format)

        if isinstance(value, timedelta):
            return self._format_duration(value)

        return str(value)

    @staticmethod
    def _format_duration(value: timedelta) -> str:
        total_seconds = int(round(value.total_seconds()))
        sign = "-" if total_seconds < 0 else ""
        hours, remainder = divmod(abs(total_seconds), 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"
