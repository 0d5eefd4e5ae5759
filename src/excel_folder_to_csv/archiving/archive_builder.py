"""In-memory ZIP assembly for converted CSV entries.

The ArchiveBuilder collects named text entries and finalizes them into a
single ZIP blob. Entries keep their full relative paths, so the archive
mirrors the source folder structure.
"""

import io
import zipfile
from typing import Dict, List, Optional

from excel_folder_to_csv.models.data_models import ArchiveConfig, ArchiveEntry, ArchiveError
from excel_folder_to_csv.utils.logger import get_processing_logger
from excel_folder_to_csv.utils.logging_decorators import log_operation, operation_context


class ArchiveBuilder:
    """Accumulates CSV entries and produces a ZIP archive.

    Every member is stamped with the same fixed date so that identical
    entries always produce byte-identical archives.

    Example:
        >>> builder = ArchiveBuilder()
        >>> builder.add_entry("out/B/report.csv", "a,b\\n")
        >>> blob = builder.finalize()
    """

    FIXED_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

    COMPRESSION_METHODS = {
        "deflated": zipfile.ZIP_DEFLATED,
        "stored": zipfile.ZIP_STORED,
    }

    def __init__(self, archive_config: Optional[ArchiveConfig] = None, encoding: str = "utf-8"):
        """Initialize archive builder.

        Args:
            archive_config: Compression settings
            encoding: Encoding used for the text entries
        """
        self.archive_config = archive_config or ArchiveConfig()
        self.encoding = encoding
        self.logger = get_processing_logger(__name__)
        self._entries: Dict[str, str] = {}

    def add_entry(self, path: str, content: str) -> None:
        """Add a named text entry.

        A path that was already added is replaced by the new content.

        Args:
            path: Archive-relative path with forward slashes
            content: Text content of the entry

        Raises:
            ArchiveError: If the path is empty, absolute or escapes the archive root
        """
        self._validate_path(path)

        if path in self._entries:
            self.logger.warning(
                f"Archive entry {path} added twice, replacing earlier content",
                extra={"entry_path": path}
            )

        self._entries[path] = content

    @staticmethod
    def _validate_path(path: str) -> None:
        if not path or not path.strip("/"):
            raise ArchiveError("Archive entry path cannot be empty")

        if path.startswith("/") or "\\" in path:
            raise ArchiveError(
                f"Archive entry path must be relative with '/' separators: {path}",
                file_path=path
            )

        if any(segment in ("", "..") for segment in path.split("/")):
            raise ArchiveError(f"Invalid segment in archive entry path: {path}", file_path=path)

    @property
    def entries(self) -> List[ArchiveEntry]:
        """Entries in insertion order."""
        return [ArchiveEntry(path, content) for path, content in self._entries.items()]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def _directory_names(self) -> List[str]:
        """Parent directories of all entries, in first-seen order."""
        directories: Dict[str, None] = {}
        for path in self._entries:
            segments = path.split("/")[:-1]
            for depth in range(1, len(segments) + 1):
                directories.setdefault("/".join(segments[:depth]) + "/", None)
        return list(directories)

    @log_operation("finalize_archive", log_args=False)
    def finalize(self) -> bytes:
        """Produce the ZIP archive containing every added entry.

        Returns:
            ZIP file bytes

        Raises:
            ArchiveError: If the archive cannot be written
        """
        with operation_context(
            "archive_finalization",
            self.logger,
            entry_count=len(self._entries)
        ) as metrics:
            compression = self.COMPRESSION_METHODS[self.archive_config.compression]
            buffer = io.BytesIO()

            try:
                with zipfile.ZipFile(
                    buffer,
                    mode="w",
                    compression=compression,
                    compresslevel=self.archive_config.compresslevel
                ) as zf:
                    for directory in self._directory_names():
                        info = zipfile.ZipInfo(directory, date_time=self.FIXED_TIMESTAMP)
                        info.external_attr = 0o40755 << 16 | 0x10
                        zf.writestr(info, b"")

                    for path, content in self._entries.items():
                        info = zipfile.ZipInfo(path, date_time=self.FIXED_TIMESTAMP)
                        info.compress_type = compression
                        info.external_attr = 0o644 << 16
                        zf.writestr(
                            info,
                            content.encode(self.encoding),
                            compresslevel=self.archive_config.compresslevel
                        )
            except (OSError, ValueError, UnicodeEncodeError, zipfile.LargeZipFile) as e:
                raise ArchiveError(f"Failed to build archive: {e}") from e

            blob = buffer.getvalue()
            if metrics:
                metrics.add_metadata("archive_size", len(blob))

            self.logger.info(
                f"Archive finalized: {len(self._entries)} entries, {len(blob):,} bytes",
                extra={"structured": {
                    "operation": "archive_finalized",
                    "entry_count": len(self._entries),
                    "archive_size": len(blob),
                }}
            )
            return blob
