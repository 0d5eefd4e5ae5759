"""Logging utilities for the Excel folder to CSV converter.

This module provides logging setup with support for:
- Console, rotating file and structured JSON handlers
- Run ID injection into every log record
- Domain-specific logging methods for conversion events
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from excel_folder_to_csv.models.data_models import LoggingConfig
from excel_folder_to_csv.utils.run_context import RunContext


class RunIdFilter(logging.Filter):
    """Adds the current run ID to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = RunContext.get_run_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "run_id": getattr(record, "run_id", None),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        structured = getattr(record, "structured", None)
        if isinstance(structured, dict):
            log_entry["structured"] = structured

        for name in ("event_type", "file_path", "sheet_name", "entry_path",
                     "progress", "error_type"):
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ProcessingLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter with conversion-specific logging helpers."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs.setdefault("extra", {})
        kwargs["extra"].update(self.extra)
        return msg, kwargs

    def log_file_start(self, file_path: str, index: int, total: int, size_bytes: int) -> None:
        """Log the start of one file's conversion."""
        self.info(
            f"Converting file {index}/{total}: {file_path} ({size_bytes:,} bytes)",
            extra={
                "event_type": "file_start",
                "file_path": file_path,
                "structured": {"index": index, "total": total, "size_bytes": size_bytes},
            }
        )

    def log_file_complete(self, file_path: str, sheet_count: int, progress: int) -> None:
        """Log completion of one file's conversion."""
        self.info(
            f"Converted {file_path}: {sheet_count} sheet(s), progress {progress}%",
            extra={
                "event_type": "file_complete",
                "file_path": file_path,
                "progress": progress,
                "structured": {"sheet_count": sheet_count},
            }
        )

    def log_entry_written(self, entry_path: str, sheet_name: str, size_bytes: int) -> None:
        """Log a CSV entry added to the archive."""
        self.debug(
            f"Added archive entry {entry_path} from sheet '{sheet_name}' ({size_bytes:,} bytes)",
            extra={
                "event_type": "entry_written",
                "entry_path": entry_path,
                "sheet_name": sheet_name,
            }
        )

    def log_error(
        self,
        error_type: str,
        message: str,
        file_path: Optional[Union[str, Path]] = None,
        exc_info: bool = True
    ) -> None:
        """Log a conversion error with context."""
        extra: Dict[str, Any] = {"event_type": "conversion_error", "error_type": error_type}
        if file_path:
            extra["file_path"] = str(file_path)
        self.error(message, extra=extra, exc_info=exc_info)


class LoggerManager:
    """Manages logger setup and configuration."""

    def __init__(self):
        self._configured = False
        self._adapters: Dict[str, ProcessingLoggerAdapter] = {}

    @property
    def configured(self) -> bool:
        """Whether setup_logging has been called."""
        return self._configured

    def setup_logging(self, config: LoggingConfig) -> None:
        """Set up logging configuration.

        Args:
            config: Logging configuration
        """
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

        root_logger.setLevel(config.log_level)

        if config.console_enabled:
            self._add_handler(logging.StreamHandler(sys.stderr), config, self._text_formatter(config))

        if config.file_enabled:
            config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=config.file_path,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8"
            )
            self._add_handler(file_handler, config, self._text_formatter(config))

        if config.structured_enabled:
            structured_path = config.file_path.with_suffix(".json")
            structured_path.parent.mkdir(parents=True, exist_ok=True)
            structured_handler = logging.handlers.RotatingFileHandler(
                filename=structured_path,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8"
            )
            self._add_handler(structured_handler, config, JSONFormatter())

        # Reduce verbosity of third-party libraries
        logging.getLogger("openpyxl").setLevel(logging.WARNING)
        logging.getLogger("pandas").setLevel(logging.WARNING)

        self._configured = True
        logging.getLogger(__name__).debug(
            f"Logging configured: level={config.level}, console={config.console_enabled}, "
            f"file={config.file_enabled}, structured={config.structured_enabled}"
        )

    @staticmethod
    def _text_formatter(config: LoggingConfig) -> logging.Formatter:
        return logging.Formatter(fmt=config.format, datefmt="%Y-%m-%d %H:%M:%S")

    @staticmethod
    def _add_handler(
        handler: logging.Handler,
        config: LoggingConfig,
        formatter: logging.Formatter
    ) -> None:
        handler.setLevel(config.log_level)
        handler.setFormatter(formatter)
        handler.addFilter(RunIdFilter())
        logging.getLogger().addHandler(handler)

    def get_processing_logger(
        self,
        name: str,
        context: Optional[Dict[str, Any]] = None
    ) -> ProcessingLoggerAdapter:
        """Get processing logger adapter with context.

        Args:
            name: Logger name
            context: Additional context for all log records

        Returns:
            Processing logger adapter
        """
        cache_key = f"{name}:{sorted((context or {}).items())}"
        if cache_key not in self._adapters:
            self._adapters[cache_key] = ProcessingLoggerAdapter(logging.getLogger(name), context)
        return self._adapters[cache_key]

    def shutdown(self) -> None:
        """Flush and close all handlers."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            handler.flush()
            handler.close()
            root_logger.removeHandler(handler)
        self._configured = False
        self._adapters.clear()


# Global logger manager instance
logger_manager = LoggerManager()


def setup_logging(config: LoggingConfig) -> None:
    """Set up application logging."""
    logger_manager.setup_logging(config)


def get_processing_logger(
    name: str,
    context: Optional[Dict[str, Any]] = None
) -> ProcessingLoggerAdapter:
    """Get processing logger with context.

    Args:
        name: Logger name (typically __name__)
        context: Additional context for log records

    Returns:
        Processing logger adapter
    """
    return logger_manager.get_processing_logger(name, context)


def shutdown_logging() -> None:
    """Shutdown logging system."""
    logger_manager.shutdown()
