"""Tests for logging setup and the processing logger adapter."""

import json
import logging
from pathlib import Path

import pytest

from excel_folder_to_csv.models.data_models import LoggingConfig
from excel_folder_to_csv.utils.logger import (
    JSONFormatter,
    LoggerManager,
    RunIdFilter,
    get_processing_logger,
)
from excel_folder_to_csv.utils.run_context import RunContext


@pytest.fixture
def manager():
    """LoggerManager that restores the root logger afterwards."""
    root_logger = logging.getLogger()
    saved_handlers = root_logger.handlers[:]
    saved_level = root_logger.level

    manager = LoggerManager()
    yield manager

    manager.shutdown()
    for handler in saved_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(saved_level)


def _record(msg="hello", **extra):
    record = logging.LogRecord("excel_folder_to_csv.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRunIdFilter:
    """Test cases for RunIdFilter."""

    def test_outside_run(self):
        """Test the placeholder used outside a run."""
        record = _record()
        assert RunIdFilter().filter(record) is True
        assert record.run_id == "-"

    def test_inside_run(self):
        """Test that the active run ID is injected."""
        record = _record()
        with RunContext("run-7"):
            RunIdFilter().filter(record)
        assert record.run_id == "run-7"

    def test_existing_run_id_kept(self):
        """Test that an explicit run_id on the record wins."""
        record = _record(run_id="explicit")
        with RunContext("run-7"):
            RunIdFilter().filter(record)
        assert record.run_id == "explicit"


class TestJSONFormatter:
    """Test cases for JSONFormatter."""

    def test_format(self):
        """Test the JSON payload of a record."""
        record = _record(
            run_id="run-1",
            event_type="file_complete",
            file_path="A/x.xlsx",
            structured={"sheet_count": 2},
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["run_id"] == "run-1"
        assert data["event_type"] == "file_complete"
        assert data["file_path"] == "A/x.xlsx"
        assert data["structured"] == {"sheet_count": 2}
        assert "exception" not in data

    def test_non_ascii(self):
        """Test that non-ASCII text is written as is."""
        data = JSONFormatter().format(_record("Übersicht"))
        assert "Übersicht" in data


class TestLoggerManager:
    """Test cases for LoggerManager."""

    def test_console_only(self, manager):
        """Test default setup with a console handler."""
        manager.setup_logging(LoggingConfig(level="WARNING"))

        root_logger = logging.getLogger()
        assert manager.configured
        assert root_logger.level == logging.WARNING
        assert len(root_logger.handlers) == 1
        assert any(isinstance(f, RunIdFilter) for f in root_logger.handlers[0].filters)

    def test_file_and_structured(self, manager, temp_dir: Path):
        """Test file and JSON handlers writing under the configured path."""
        log_path = temp_dir / "logs" / "run.log"
        manager.setup_logging(LoggingConfig(
            level="INFO",
            file_enabled=True,
            file_path=log_path,
            console_enabled=False,
            structured_enabled=True,
        ))

        with RunContext("run-9"):
            logging.getLogger("excel_folder_to_csv.test").info("written")
        manager.shutdown()

        assert "run-9" in log_path.read_text(encoding="utf-8")
        lines = log_path.with_suffix(".json").read_text(encoding="utf-8").splitlines()
        entries = [json.loads(line) for line in lines]
        assert any(e["message"] == "written" and e["run_id"] == "run-9" for e in entries)

    def test_shutdown(self, manager):
        """Test that shutdown removes handlers."""
        manager.setup_logging(LoggingConfig())
        manager.shutdown()

        assert not manager.configured
        assert logging.getLogger().handlers == []

    def test_adapter_cache(self, manager):
        """Test that adapters are cached per name and context."""
        first = manager.get_processing_logger("x", {"a": 1})
        assert manager.get_processing_logger("x", {"a": 1}) is first
        assert manager.get_processing_logger("x") is not first


class TestProcessingLoggerAdapter:
    """Test cases for the domain logging helpers."""

    def test_file_complete(self, caplog):
        """Test the file completion event."""
        logger = get_processing_logger("excel_folder_to_csv.test_adapter")

        with caplog.at_level(logging.INFO):
            logger.log_file_complete("A/x.xlsx", 2, 50)

        record = caplog.records[-1]
        assert record.event_type == "file_complete"
        assert record.progress == 50
        assert record.structured == {"sheet_count": 2}
        assert "2 sheet(s)" in record.getMessage()

    def test_log_error(self, caplog):
        """Test the error event with a file path."""
        logger = get_processing_logger("excel_folder_to_csv.test_adapter")

        with caplog.at_level(logging.ERROR):
            logger.log_error("parse", "bad workbook", file_path=Path("A/x.xlsx"), exc_info=False)

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.error_type == "parse"
        assert record.file_path == "A/x.xlsx"

    def test_context_extra(self, caplog):
        """Test that adapter context is merged into every record."""
        logger = get_processing_logger("excel_folder_to_csv.test_context", {"component": "cli"})

        with caplog.at_level(logging.INFO):
            logger.info("with context")

        assert caplog.records[-1].component == "cli"
