"""Archive assembly for the Excel folder to CSV converter.

This package computes the archive path of every CSV entry, collects the
entries into one ZIP archive and delivers the finished archive to disk.
"""

from .archive_builder import ArchiveBuilder
from .delivery import ArchiveDelivery
from .path_rewriter import csv_leaf_name, entry_paths, rewrite_path

__all__ = ["ArchiveBuilder", "ArchiveDelivery", "csv_leaf_name", "entry_paths", "rewrite_path"]
