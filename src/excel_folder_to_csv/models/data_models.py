"""Core data models for the Excel folder to CSV converter.

This module contains the dataclasses, enums and exception types used
throughout the application: the records flowing through a conversion run,
the run state itself, and the configuration sections.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd


GENERIC_ERROR_MESSAGE = "An error occurred during conversion."


class ConversionError(Exception):
    """Base exception for every failure surfaced by a conversion run.

    Attributes:
        message: Human-readable description of the failure
        file_path: Relative path of the file involved (if applicable)
        error_type: Category of error (validation, parse, unknown, archive)
    """

    error_type_default = "general"

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        error_type: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.file_path = file_path
        self.error_type = error_type or self.error_type_default

    def __str__(self) -> str:
        if self.file_path:
            return f"{type(self).__name__}[{self.error_type}]: {self.message} (File: {self.file_path})"
        return f"{type(self).__name__}[{self.error_type}]: {self.message}"


class ValidationError(ConversionError):
    """Raised when a run cannot start: no files selected or blank root name."""
    error_type_default = "validation"


class ParseError(ConversionError):
    """Raised when a file's bytes cannot be decoded as a spreadsheet."""
    error_type_default = "parse"


class UnknownError(ConversionError):
    """Raised for any other failure while decoding, serializing or archiving."""
    error_type_default = "unknown"


class ArchiveError(UnknownError):
    """Raised when the archive cannot be assembled or written out."""
    error_type_default = "archive"


@dataclass(frozen=True)
class SelectedFile:
    """A spreadsheet file picked from the selected directory tree.

    The raw bytes are either held inline (``content``) or read from
    ``source_path`` on demand, so only the file being converted has to be
    in memory.

    Attributes:
        relative_path: Forward-slash path whose first segment is the root folder
        size_bytes: File size in bytes
        content: Inline raw bytes (optional)
        source_path: Location on disk to read the bytes from (optional)
    """
    relative_path: str
    size_bytes: int = 0
    content: Optional[bytes] = field(default=None, repr=False)
    source_path: Optional[Path] = None

    def __post_init__(self) -> None:
        """Normalise and validate the record after initialization."""
        normalized = self.relative_path.replace("\\", "/").lstrip("/")
        object.__setattr__(self, "relative_path", normalized)

        segments = normalized.split("/")
        if len(segments) < 2 or not all(segments):
            raise ValueError(
                f"relative_path must be '<root>/.../<file>', got '{self.relative_path}'"
            )

        if self.content is None and self.source_path is None:
            raise ValueError("either content or source_path must be provided")

        if self.source_path is not None and not isinstance(self.source_path, Path):
            object.__setattr__(self, "source_path", Path(self.source_path))

        if self.content is not None and not self.size_bytes:
            object.__setattr__(self, "size_bytes", len(self.content))

        if self.size_bytes < 0:
            raise ValueError("size_bytes cannot be negative")

    @property
    def name(self) -> str:
        """File name (last path segment)."""
        return self.relative_path.rsplit("/", 1)[-1]

    @property
    def root_folder(self) -> str:
        """Name of the original root folder (first path segment)."""
        return self.relative_path.split("/", 1)[0]

    @property
    def size_kb(self) -> float:
        """File size in kilobytes."""
        return self.size_bytes / 1024

    def read_bytes(self) -> bytes:
        """Return the raw file content."""
        if self.content is not None:
            return self.content
        return self.source_path.read_bytes()


@dataclass
class Workbook:
    """A decoded spreadsheet: ordered sheet names and one grid per sheet.

    Each grid is an object-dtype DataFrame holding typed cell values
    (str, int, float, bool, date/time values) with None for empty cells.

    Attributes:
        source_name: Relative path or name of the file the workbook came from
        sheet_names: Sheet names in workbook storage order
        sheets: Mapping from sheet name to its cell grid
    """
    source_name: str
    sheet_names: List[str]
    sheets: Dict[str, pd.DataFrame]

    def __post_init__(self) -> None:
        """Validate workbook after initialization."""
        if not self.sheet_names:
            raise ValueError("a workbook must contain at least one sheet")

        if len(set(self.sheet_names)) != len(self.sheet_names):
            raise ValueError("sheet names must be unique within a workbook")

        if set(self.sheet_names) != set(self.sheets):
            raise ValueError("sheet_names and sheets must describe the same sheets")

        for name, grid in self.sheets.items():
            if not isinstance(grid, pd.DataFrame):
                raise TypeError(f"sheet '{name}' must be a pandas DataFrame")

    @property
    def sheet_count(self) -> int:
        """Number of sheets in the workbook."""
        return len(self.sheet_names)

    @property
    def is_multi_sheet(self) -> bool:
        """Whether the workbook fans out into one CSV per sheet."""
        return self.sheet_count > 1

    def sheet(self, name: str) -> pd.DataFrame:
        """Get the cell grid of a sheet by name."""
        return self.sheets[name]


@dataclass(frozen=True)
class ArchiveEntry:
    """A (path, CSV text) pair destined for the output archive."""
    path: str
    content: str

    @property
    def size_bytes(self) -> int:
        """Encoded size of the entry content."""
        return len(self.content.encode("utf-8"))


class RunStatus(Enum):
    """States of a conversion run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ConversionRun:
    """Transient state of one conversion run.

    Attributes:
        total_files: Number of files selected for the run
        output_root_name: Trimmed root folder name used inside the archive
        completed_files: Number of files fully converted so far
        status: Current state of the run
        error: First error encountered, if any
        archive: Finalized archive bytes, set once on success
        archive_name: File name handed to delivery (``<root>.zip``)
        entries: Archive paths written, in order
        progress_history: Every progress value emitted during the run
        delivered_to: Location reported by delivery, if any
        run_id: Identifier attached to the run's log records
    """
    total_files: int
    output_root_name: str = ""
    completed_files: int = 0
    status: RunStatus = RunStatus.IDLE
    error: Optional[ConversionError] = None
    archive: Optional[bytes] = field(default=None, repr=False)
    archive_name: Optional[str] = None
    entries: List[str] = field(default_factory=list)
    progress_history: List[int] = field(default_factory=list)
    delivered_to: Optional[Any] = None
    run_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate run state after initialization."""
        if self.total_files < 0:
            raise ValueError("total_files cannot be negative")

        if not 0 <= self.completed_files <= self.total_files:
            raise ValueError("completed_files must be between 0 and total_files")

    @property
    def progress(self) -> int:
        """Percentage of files completed, rounded half up.

        Never reports 0 once a file has completed and is exactly 100
        after the last one.
        """
        if self.total_files == 0 or self.completed_files == 0:
            return 0

        percent = (200 * self.completed_files + self.total_files) // (2 * self.total_files)
        return max(percent, 1)

    def advance(self) -> int:
        """Mark one more file as completed and return the new progress."""
        if self.completed_files >= self.total_files:
            raise ValueError("all files are already completed")

        self.completed_files += 1
        progress = self.progress
        self.progress_history.append(progress)
        return progress

    @property
    def error_message(self) -> Optional[str]:
        """User-facing description of the run's error."""
        if self.error is None:
            return None
        return self.error.message or GENERIC_ERROR_MESSAGE

    @property
    def succeeded(self) -> bool:
        """Whether the run produced and delivered an archive."""
        return self.status is RunStatus.SUCCESS

    @property
    def outcome(self) -> str:
        """Status boundary value: validation-error, run-error or success."""
        if self.status is RunStatus.SUCCESS:
            return "success"
        if self.status is RunStatus.FAILED:
            return "run-error"
        if isinstance(self.error, ValidationError):
            return "validation-error"
        return self.status.value


@dataclass
class InputConfig:
    """Configuration for reading selected files.

    Attributes:
        max_file_size_mb: Largest file to decode in MB (0 disables the check)
    """
    max_file_size_mb: float = 100

    def __post_init__(self) -> None:
        """Validate input configuration after initialization."""
        if self.max_file_size_mb < 0:
            raise ValueError("max_file_size_mb cannot be negative")

    @property
    def max_file_size_bytes(self) -> Optional[int]:
        """Maximum file size in bytes, None when unlimited."""
        if not self.max_file_size_mb:
            return None
        return int(self.max_file_size_mb * 1024 * 1024)


@dataclass
class OutputConfig:
    """Configuration for archive naming and delivery.

    Attributes:
        directory: Directory the finished archive is written to
        root_suffix: Suffix appended to the source folder for the default root name
        overwrite: Whether an existing archive with the same name is replaced
        timestamp_format: Format for the timestamp added on name conflicts
    """
    directory: Path = Path(".")
    root_suffix: str = "_csv"
    overwrite: bool = False
    timestamp_format: str = "%Y%m%d_%H%M%S"

    def __post_init__(self) -> None:
        """Validate output configuration after initialization."""
        if not isinstance(self.directory, Path):
            self.directory = Path(self.directory)

        if "/" in self.root_suffix or "\\" in self.root_suffix:
            raise ValueError("root_suffix cannot contain path separators")

        try:
            datetime.now().strftime(self.timestamp_format)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid timestamp_format: {e}")


@dataclass
class CSVConfig:
    """Configuration for rendering sheets as CSV text.

    Attributes:
        line_terminator: Sequence written after every row
        encoding: Encoding of CSV entries inside the archive
        date_format: strftime format for date cells
        datetime_format: strftime format for date-time cells
        time_format: strftime format for time-of-day cells
    """
    line_terminator: str = "\n"
    encoding: str = "utf-8"
    date_format: str = "%Y-%m-%d"
    datetime_format: str = "%Y-%m-%d %H:%M:%S"
    time_format: str = "%H:%M:%S"

    def __post_init__(self) -> None:
        """Validate CSV configuration after initialization."""
        if self.line_terminator not in ("\n", "\r\n"):
            raise ValueError("line_terminator must be '\\n' or '\\r\\n'")

        if not self.encoding.strip():
            raise ValueError("encoding cannot be empty")

        for name in ("date_format", "datetime_format", "time_format"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} cannot be empty")


@dataclass
class ArchiveConfig:
    """Configuration for ZIP assembly.

    Attributes:
        compression: "deflated" or "stored"
        compresslevel: zlib level 0-9 for deflated archives (None for default)
    """
    compression: str = "deflated"
    compresslevel: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate archive configuration after initialization."""
        self.compression = self.compression.lower()
        if self.compression not in ("deflated", "stored"):
            raise ValueError("compression must be 'deflated' or 'stored'")

        if self.compresslevel is not None and not 0 <= self.compresslevel <= 9:
            raise ValueError("compresslevel must be between 0 and 9")


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level
        format: Log message format string
        file_enabled: Whether to log to file
        file_path: Path for log file
        console_enabled: Whether to log to console
        structured_enabled: Whether to use structured JSON logging
    """
    level: str = "INFO"
    format: str = "%(asctime)s - %(run_id)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = False
    file_path: Path = Path("./logs/excel_folder_to_csv.log")
    console_enabled: bool = True
    structured_enabled: bool = False

    def __post_init__(self) -> None:
        """Validate logging configuration after initialization."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")

        self.level = self.level.upper()

        if not isinstance(self.file_path, Path):
            self.file_path = Path(self.file_path)

    @property
    def log_level(self) -> int:
        """Get numeric logging level."""
        return getattr(logging, self.level)


@dataclass
class Config:
    """Main configuration for the converter."""
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    csv: CSVConfig = field(default_factory=CSVConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
