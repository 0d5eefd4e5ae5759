"""Excel Folder to CSV Converter.

Converts every Excel workbook found in a folder tree into CSV files, one
per sheet, and packages them into a single ZIP archive that mirrors the
original folder structure under a new root name.
"""

__version__ = "1.0.0"
__author__ = "Excel Folder to CSV Team"
__email__ = "info@example.com"

from excel_folder_to_csv.models.data_models import (
    Config,
    ConversionError,
    ConversionRun,
    ParseError,
    RunStatus,
    SelectedFile,
    ValidationError,
    Workbook,
)
from excel_folder_to_csv.converter import FolderConverter
from excel_folder_to_csv.discovery.file_discovery import discover_files
from excel_folder_to_csv.processors.workbook_decoder import WorkbookDecoder
from excel_folder_to_csv.generators.csv_generator import CSVGenerator
from excel_folder_to_csv.archiving import ArchiveBuilder, ArchiveDelivery

__all__ = [
    "Config",
    "ConversionError",
    "ConversionRun",
    "ParseError",
    "RunStatus",
    "SelectedFile",
    "ValidationError",
    "Workbook",
    "FolderConverter",
    "discover_files",
    "WorkbookDecoder",
    "CSVGenerator",
    "ArchiveBuilder",
    "ArchiveDelivery",
]
