"""Main conversion orchestrator for the Excel folder to CSV converter.

This module drives one conversion run end to end:
- Validates the selected files and output root name
- Decodes every workbook in order and serializes each sheet to CSV
- Rewrites entry paths under the output root and collects them in an archive
- Reports progress after every file and hands the finished archive to delivery
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from excel_folder_to_csv.archiving.archive_builder import ArchiveBuilder
from excel_folder_to_csv.archiving.delivery import ArchiveDelivery
from excel_folder_to_csv.archiving.path_rewriter import entry_paths
from excel_folder_to_csv.config.config_manager import config_manager
from excel_folder_to_csv.discovery.file_discovery import (
    default_output_root_name,
    discover_files,
    ensure_runnable,
)
from excel_folder_to_csv.generators.csv_generator import CSVGenerator
from excel_folder_to_csv.models.data_models import (
    GENERIC_ERROR_MESSAGE,
    Config,
    ConversionError,
    ConversionRun,
    ParseError,
    RunStatus,
    SelectedFile,
    UnknownError,
    ValidationError,
)
from excel_folder_to_csv.processors.workbook_decoder import WorkbookDecoder
from excel_folder_to_csv.utils.logger import get_processing_logger
from excel_folder_to_csv.utils.logging_decorators import operation_context
from excel_folder_to_csv.utils.run_context import RunContext


NO_ROOT_NAME_MESSAGE = "Please provide an output folder name."
INVALID_ROOT_NAME_MESSAGE = "Output folder name must be a single folder name without '/', '\\' or '..'."

ProgressCallback = Callable[[int], None]
Delivery = Callable[[bytes, str], Any]


@dataclass
class ConversionStats:
    """Counters accumulated over every run of a converter."""
    files_converted: int = 0
    sheets_serialized: int = 0
    entries_written: int = 0
    archives_delivered: int = 0
    runs_succeeded: int = 0
    runs_failed: int = 0
    runs_rejected: int = 0


class FolderConverter:
    """Converts a folder of Excel workbooks into one ZIP of CSV files.

    A run never raises: its outcome, progress and error are reported on
    the returned ConversionRun.

    Example:
        >>> converter = FolderConverter()
        >>> run = converter.convert_folder("reports", on_progress=print)
        >>> run.status, run.delivered_to
        (<RunStatus.SUCCESS: 'success'>, PosixPath('reports_csv.zip'))
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        decoder: Optional[WorkbookDecoder] = None,
        generator: Optional[CSVGenerator] = None,
        delivery: Optional[Delivery] = None
    ):
        """Initialize folder converter.

        Args:
            config: Configuration (loaded through the config manager if None)
            decoder: Workbook decoder (built from config if None)
            generator: CSV generator (built from config if None)
            delivery: Callable receiving (archive bytes, file name)
        """
        self.config = config if config is not None else config_manager.load_config()
        self.logger = get_processing_logger(__name__)

        self.decoder = decoder or WorkbookDecoder(self.config.input)
        self.generator = generator or CSVGenerator(self.config.csv)
        self.delivery = delivery or ArchiveDelivery.from_config(self.config.output)

        self.stats = ConversionStats()

    def convert_folder(
        self,
        folder: Union[str, Path],
        output_root_name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> ConversionRun:
        """Discover the spreadsheets below a folder and convert them.

        Args:
            folder: Selected directory
            output_root_name: Root folder name inside the archive
                (defaults to the folder name plus the configured suffix)
            on_progress: Called with the progress percentage after each file

        Returns:
            The finished run
        """
        try:
            files = discover_files(folder)
        except ValidationError as e:
            return self._reject(ConversionRun(total_files=0), e)

        if output_root_name is None:
            output_root_name = default_output_root_name(files, self.config.output.root_suffix)

        return self.run(files, output_root_name, on_progress)

    def run(
        self,
        files: Iterable[SelectedFile],
        output_root_name: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> ConversionRun:
        """Convert the given files into one archive.

        Args:
            files: Selected files, processed strictly in this order
            output_root_name: Root folder name inside the archive
            on_progress: Called with the progress percentage after each file

        Returns:
            The finished run (IDLE with a ValidationError when not runnable)
        """
        files = list(files)
        conversion_run = self._prepare(files, output_root_name)
        if conversion_run.error is not None:
            return conversion_run

        with RunContext() as run_id:
            conversion_run.run_id = run_id
            for _ in self._execute(conversion_run, files, on_progress):
                pass

        return conversion_run

    async def run_async(
        self,
        files: Iterable[SelectedFile],
        output_root_name: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> ConversionRun:
        """Coroutine version of run() that yields to the event loop after each file."""
        files = list(files)
        conversion_run = self._prepare(files, output_root_name)
        if conversion_run.error is not None:
            return conversion_run

        with RunContext() as run_id:
            conversion_run.run_id = run_id
            for _ in self._execute(conversion_run, files, on_progress):
                await asyncio.sleep(0)

        return conversion_run

    def _prepare(self, files: List[SelectedFile], output_root_name: Optional[str]) -> ConversionRun:
        """Create the run record and check that it may start."""
        root_name = (output_root_name or "").strip()
        conversion_run = ConversionRun(total_files=len(files), output_root_name=root_name)

        try:
            ensure_runnable(files)
            if not root_name:
                raise ValidationError(NO_ROOT_NAME_MESSAGE)
            if "/" in root_name or "\\" in root_name or root_name in (".", ".."):
                raise ValidationError(INVALID_ROOT_NAME_MESSAGE)
        except ValidationError as e:
            return self._reject(conversion_run, e)

        return conversion_run

    def _reject(self, conversion_run: ConversionRun, error: ValidationError) -> ConversionRun:
        conversion_run.error = error
        self.stats.runs_rejected += 1
        self.logger.warning(
            f"Conversion not started: {error.message}",
            extra={"event_type": "validation_error", "error_type": error.error_type}
        )
        return conversion_run

    def _execute(
        self,
        conversion_run: ConversionRun,
        files: List[SelectedFile],
        on_progress: Optional[ProgressCallback]
    ) -> Iterator[int]:
        """Run the pipeline, yielding the progress after each converted file.

        Every exception ends the run as FAILED; none escapes to the caller.
        """
        conversion_run.status = RunStatus.RUNNING
        conversion_run.started_at = datetime.now()
        builder = ArchiveBuilder(self.config.archive, encoding=self.config.csv.encoding)

        self.logger.info(
            f"Starting conversion of {conversion_run.total_files} file(s) "
            f"into '{conversion_run.output_root_name}'",
            extra={"structured": {
                "operation": "conversion_start",
                "total_files": conversion_run.total_files,
                "output_root_name": conversion_run.output_root_name,
            }}
        )

        try:
            with operation_context(
                "folder_conversion",
                self.logger,
                total_files=conversion_run.total_files,
                output_root_name=conversion_run.output_root_name
            ) as metrics:
                for index, selected in enumerate(files, start=1):
                    sheet_count = self._convert_file(selected, index, conversion_run, builder)

                    progress = conversion_run.advance()
                    self.logger.log_file_complete(selected.relative_path, sheet_count, progress)
                    if on_progress is not None:
                        on_progress(progress)
                    yield progress

                blob = builder.finalize()
                archive_name = f"{conversion_run.output_root_name}.zip"
                conversion_run.delivered_to = self.delivery(blob, archive_name)

                conversion_run.archive = blob
                conversion_run.archive_name = archive_name
                conversion_run.status = RunStatus.SUCCESS
                self.stats.archives_delivered += 1
                self.stats.runs_succeeded += 1

                if metrics:
                    metrics.add_metadata("entry_count", len(conversion_run.entries))
                    metrics.add_metadata("archive_size", len(blob))

                self.logger.info(
                    f"Conversion complete: {len(conversion_run.entries)} CSV file(s) in "
                    f"{archive_name} ({len(blob):,} bytes)",
                    extra={"structured": {
                        "operation": "conversion_success",
                        "entry_count": len(conversion_run.entries),
                        "archive_name": archive_name,
                        "archive_size": len(blob),
                        "delivered_to": str(conversion_run.delivered_to),
                    }}
                )
        except ConversionError as e:
            self._fail(conversion_run, e)
        except Exception as e:
            error = UnknownError(str(e) or GENERIC_ERROR_MESSAGE)
            error.__cause__ = e
            self._fail(conversion_run, error)
        finally:
            conversion_run.finished_at = datetime.now()

    def _convert_file(
        self,
        selected: SelectedFile,
        index: int,
        conversion_run: ConversionRun,
        builder: ArchiveBuilder
    ) -> int:
        """Decode one file and add a CSV entry per sheet.

        Returns:
            Number of sheets converted
        """
        self.logger.log_file_start(
            selected.relative_path, index, conversion_run.total_files, selected.size_bytes
        )

        try:
            data = selected.read_bytes()
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}", file_path=selected.relative_path) from e

        workbook = self.decoder.decode(data, selected.relative_path)
        paths = entry_paths(
            selected.relative_path, conversion_run.output_root_name, workbook.sheet_names
        )

        for sheet_name, path in zip(workbook.sheet_names, paths):
            content = self.generator.serialize(workbook.sheet(sheet_name), sheet_name)
            is_new = path not in builder
            builder.add_entry(path, content)
            if is_new:
                conversion_run.entries.append(path)

            self.stats.sheets_serialized += 1
            self.stats.entries_written += 1
            self.logger.log_entry_written(path, sheet_name, len(content))

        self.stats.files_converted += 1
        return workbook.sheet_count

    def _fail(self, conversion_run: ConversionRun, error: ConversionError) -> None:
        conversion_run.error = error
        conversion_run.status = RunStatus.FAILED
        conversion_run.archive = None
        self.stats.runs_failed += 1
        self.logger.log_error(
            error.error_type,
            f"Conversion failed after {conversion_run.completed_files}/"
            f"{conversion_run.total_files} file(s): {error.message}",
            file_path=error.file_path
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Get processing statistics accumulated over all runs.

        Returns:
            Dictionary with processing statistics
        """
        stats: Dict[str, Any] = {
            "files_converted": self.stats.files_converted,
            "sheets_serialized": self.stats.sheets_serialized,
            "entries_written": self.stats.entries_written,
            "archives_delivered": self.stats.archives_delivered,
            "runs_succeeded": self.stats.runs_succeeded,
            "runs_failed": self.stats.runs_failed,
            "runs_rejected": self.stats.runs_rejected,
        }

        total_runs = self.stats.runs_succeeded + self.stats.runs_failed
        if total_runs > 0:
            stats["success_rate"] = (self.stats.runs_succeeded / total_runs) * 100

        return stats
