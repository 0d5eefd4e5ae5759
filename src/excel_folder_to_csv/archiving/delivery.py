"""Delivery of finished archives to the local file system.

ArchiveDelivery writes the finalized ZIP bytes to the output directory
under ``<root>.zip``, resolving name conflicts with a timestamp suffix
unless overwriting is enabled.
"""

import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from excel_folder_to_csv.models.data_models import ArchiveError, OutputConfig
from excel_folder_to_csv.utils.logger import get_processing_logger
from excel_folder_to_csv.utils.logging_decorators import log_operation, operation_context


class ArchiveDelivery:
    """Writes archive blobs into an output directory.

    Instances are callables with the signature the converter expects
    for delivery: ``delivery(blob, filename) -> Path``.

    Example:
        >>> delivery = ArchiveDelivery(Path("./out"))
        >>> delivery(blob, "reports_csv.zip")
        PosixPath('out/reports_csv.zip')
    """

    MAX_CONFLICTS = 999

    def __init__(
        self,
        output_dir: Union[str, Path] = ".",
        overwrite: bool = False,
        timestamp_format: str = "%Y%m%d_%H%M%S"
    ):
        """Initialize archive delivery.

        Args:
            output_dir: Directory receiving the archives (created if missing)
            overwrite: Replace an existing archive instead of renaming
            timestamp_format: Format for conflict-resolution timestamps
        """
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite
        self.timestamp_format = timestamp_format
        self.logger = get_processing_logger(__name__)

    @classmethod
    def from_config(cls, output_config: OutputConfig) -> "ArchiveDelivery":
        """Create a delivery target from output configuration."""
        return cls(
            output_dir=output_config.directory,
            overwrite=output_config.overwrite,
            timestamp_format=output_config.timestamp_format,
        )

    @log_operation("deliver_archive", log_args=False)
    def __call__(self, blob: bytes, filename: str) -> Path:
        """Write the archive and return its final location.

        Raises:
            ArchiveError: If the archive cannot be written
        """
        if not filename or Path(filename).name != filename:
            raise ArchiveError(f"Invalid archive file name: {filename!r}")

        with operation_context(
            "archive_delivery",
            self.logger,
            filename=filename,
            archive_size=len(blob)
        ) as metrics:
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ArchiveError(
                    f"Cannot create output directory {self.output_dir}: {e}",
                    file_path=str(self.output_dir)
                ) from e

            target = self.output_dir / filename
            if target.exists() and not self.overwrite:
                target = self.resolve_naming_conflicts(target)

            self._write_atomic(blob, target)

            if metrics:
                metrics.add_metadata("target_path", str(target))

            self.logger.info(
                f"Archive written: {target} ({len(blob):,} bytes)",
                extra={"structured": {
                    "operation": "archive_delivered",
                    "target_path": str(target),
                    "archive_size": len(blob),
                }}
            )
            return target

    def resolve_naming_conflicts(self, target_path: Path, now: Optional[datetime] = None) -> Path:
        """Resolve a file name conflict by appending a timestamp.

        Args:
            target_path: Path that already exists
            now: Time used for the suffix (defaults to the current time)

        Returns:
            A path that does not exist yet
        """
        stem = target_path.stem
        suffix = target_path.suffix
        timestamp = (now or datetime.now()).strftime(self.timestamp_format)

        new_path = target_path.with_name(f"{stem}_{timestamp}{suffix}")
        counter = 1
        while new_path.exists():
            if counter > self.MAX_CONFLICTS:
                raise ArchiveError(
                    f"Too many naming conflicts for file: {target_path}",
                    file_path=str(target_path)
                )
            new_path = target_path.with_name(f"{stem}_{timestamp}_{counter:03d}{suffix}")
            counter += 1

        self.logger.warning(
            f"Resolved naming conflict: {target_path.name} -> {new_path.name}",
            extra={"structured": {
                "operation": "naming_conflict_resolved",
                "original_name": target_path.name,
                "resolved_name": new_path.name,
            }}
        )
        return new_path

    def _write_atomic(self, blob: bytes, target: Path) -> None:
        """Write to a temporary sibling file and rename it into place."""
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(blob)
            os.replace(tmp_name, target)
        except PermissionError as e:
            raise ArchiveError(
                f"Permission denied writing {target}: {e}",
                file_path=str(target),
                error_type="permission"
            ) from e
        except OSError as e:
            raise ArchiveError(f"Failed to write {target}: {e}", file_path=str(target)) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
