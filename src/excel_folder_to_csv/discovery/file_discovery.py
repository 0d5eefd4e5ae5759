"""Spreadsheet discovery inside a selected directory tree.

Builds the SelectedFile list a conversion run works on: every file below
the selected folder whose name ends in ``.xlsx`` or ``.xls`` (any case),
with a relative path that starts with the folder's own name.
"""

import fnmatch
import os
from pathlib import Path
from typing import Iterable, List, Sequence, Union

from excel_folder_to_csv.models.data_models import SelectedFile, ValidationError
from excel_folder_to_csv.utils.logger import get_processing_logger
from excel_folder_to_csv.utils.logging_decorators import log_operation


SPREADSHEET_PATTERNS = ("*.xlsx", "*.xls")
FALLBACK_ROOT_NAME = "converted_csvs"
NO_FILES_MESSAGE = "Please select a folder containing Excel files first."

logger = get_processing_logger(__name__)


def is_spreadsheet(name: str) -> bool:
    """Check whether a file name matches a spreadsheet pattern (case-insensitive)."""
    filename = name.replace("\\", "/").rsplit("/", 1)[-1].lower()
    return any(fnmatch.fnmatchcase(filename, pattern) for pattern in SPREADSHEET_PATTERNS)


def filter_spreadsheets(files: Iterable[SelectedFile]) -> List[SelectedFile]:
    """Keep only the records whose file name is a spreadsheet."""
    return [selected for selected in files if is_spreadsheet(selected.name)]


@log_operation("discover_files")
def discover_files(folder: Union[str, Path]) -> List[SelectedFile]:
    """Collect the spreadsheets below a folder.

    Directories and files are visited in sorted order, so the result is the
    same for the same tree. Non-spreadsheet files are skipped silently.

    Args:
        folder: The selected directory

    Returns:
        SelectedFile records whose bytes are read on demand

    Raises:
        ValidationError: If folder is not an existing directory
    """
    root = Path(folder)
    if not root.is_dir():
        raise ValidationError(f"Not a directory: {root}", file_path=str(root))

    root = root.resolve()
    root_name = root.name or "root"
    selected: List[SelectedFile] = []
    skipped = 0

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        relative_dir = Path(dirpath).relative_to(root)

        for filename in sorted(filenames):
            if not is_spreadsheet(filename):
                skipped += 1
                continue

            file_path = Path(dirpath) / filename
            relative_path = "/".join((root_name,) + relative_dir.parts + (filename,))
            try:
                size = file_path.stat().st_size
            except OSError as e:
                logger.warning(f"Skipping unreadable file {file_path}: {e}")
                continue

            selected.append(SelectedFile(
                relative_path=relative_path,
                size_bytes=size,
                source_path=file_path,
            ))

    logger.info(
        f"Discovered {len(selected)} Excel file(s) in {root} ({skipped} other file(s) ignored)",
        extra={"structured": {
            "operation": "files_discovered",
            "folder": str(root),
            "spreadsheet_count": len(selected),
            "ignored_count": skipped,
        }}
    )
    return selected


def default_output_root_name(files: Sequence[SelectedFile], suffix: str = "_csv") -> str:
    """Suggested output root: the first file's root folder plus a suffix."""
    if not files:
        return FALLBACK_ROOT_NAME
    return f"{files[0].root_folder}{suffix}"


def ensure_runnable(files: Sequence[SelectedFile]) -> None:
    """Raise ValidationError when there is nothing to convert."""
    if not files:
        raise ValidationError(NO_FILES_MESSAGE)
