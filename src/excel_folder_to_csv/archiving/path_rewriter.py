"""Archive path computation.

Maps a selected file's relative path onto the output archive: the root
folder is replaced by the output root name and the leaf gets a ``.csv``
extension, or ``_<sheet>.csv`` when the workbook has several sheets.
Sheet names are used verbatim, a ``/`` in a sheet name adds a folder level.
"""

import re
from typing import List, Optional, Sequence


_EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")


def rewrite_path(relative_path: str, new_root: str, new_leaf_name: str) -> str:
    """Rewrite a relative path under a new root with a new leaf name.

    Args:
        relative_path: Forward-slash path whose first segment is the root folder
        new_root: Replacement for the first segment (trimmed)
        new_leaf_name: Replacement for the last segment

    Returns:
        The rewritten relative path

    Raises:
        ValueError: If new_root is blank or the path has no root segment

    Example:
        >>> rewrite_path("A/B/report.xlsx", "out", "report.csv")
        'out/B/report.csv'
    """
    root = new_root.strip()
    if not root:
        raise ValueError("new_root cannot be blank")

    segments = relative_path.split("/")
    if len(segments) < 2:
        raise ValueError(f"path has no root folder segment: '{relative_path}'")

    segments[0] = root
    segments[-1] = new_leaf_name
    return "/".join(segments)


def csv_leaf_name(leaf: str, sheet_name: Optional[str] = None) -> str:
    """Replace a file name's extension with ``.csv`` or ``_<sheet>.csv``."""
    suffix = f"_{sheet_name}.csv" if sheet_name is not None else ".csv"
    if _EXTENSION_PATTERN.search(leaf):
        return _EXTENSION_PATTERN.sub(lambda _: suffix, leaf)
    return leaf + suffix


def entry_paths(relative_path: str, new_root: str, sheet_names: Sequence[str]) -> List[str]:
    """Archive paths for every sheet of a workbook, in sheet order.

    A single-sheet workbook maps to one ``<leaf>.csv``; a multi-sheet
    workbook maps to one ``<leaf>_<sheet>.csv`` per sheet.
    """
    leaf = relative_path.rsplit("/", 1)[-1]

    if len(sheet_names) == 1:
        return [rewrite_path(relative_path, new_root, csv_leaf_name(leaf))]

    return [
        rewrite_path(relative_path, new_root, csv_leaf_name(leaf, sheet_name))
        for sheet_name in sheet_names
    ]
