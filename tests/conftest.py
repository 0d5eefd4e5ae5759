"""Pytest configuration and shared fixtures for Excel folder to CSV tests."""

import io
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, Generator, List, Sequence

import openpyxl
import pytest
import xlwt
import yaml

from excel_folder_to_csv.config.config_manager import config_manager
from excel_folder_to_csv.models.data_models import Config, SelectedFile
from excel_folder_to_csv.utils.metrics import get_metrics_collector


Rows = Sequence[Sequence[object]]


def build_xlsx(sheets: Dict[str, Rows]) -> bytes:
    """Build an .xlsx workbook in memory, one sheet per mapping entry."""
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for name, rows in sheets.items():
        worksheet = workbook.create_sheet(title=name)
        for row in rows:
            worksheet.append(list(row))

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_xls(sheets: Dict[str, Rows]) -> bytes:
    """Build a legacy .xls workbook in memory with xlwt.

    None leaves a cell unwritten; dates get a date number format so they
    read back as date cells.
    """
    workbook = xlwt.Workbook()
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    for name, rows in sheets.items():
        worksheet = workbook.add_sheet(name)
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                if value is None:
                    continue
                if isinstance(value, (datetime, date)):
                    worksheet.write(r, c, value, date_style)
                else:
                    worksheet.write(r, c, value)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def xlsx_bytes() -> Callable[[Dict[str, Rows]], bytes]:
    """Factory building .xlsx bytes from {sheet name: rows}."""
    return build_xlsx


@pytest.fixture
def xls_bytes() -> Callable[[Dict[str, Rows]], bytes]:
    """Factory building legacy .xls bytes from {sheet name: rows}."""
    return build_xls


@pytest.fixture
def make_selected_file() -> Callable[..., SelectedFile]:
    """Factory for in-memory SelectedFile records."""
    def _make(relative_path: str, sheets: Dict[str, Rows] = None, content: bytes = None):
        if content is None:
            content = build_xlsx(sheets or {"Sheet1": [["a", 1]]})
        return SelectedFile(relative_path=relative_path, content=content)
    return _make


@pytest.fixture
def sample_folder(temp_dir: Path) -> Path:
    """Folder tree with a nested single-sheet workbook, a two-sheet workbook and a text file.

    A/
      B/report.xlsx   (Sheet1)
      data.xlsx       (Sheet1, Sheet2)
      notes.txt
    """
    root = temp_dir / "A"
    (root / "B").mkdir(parents=True)

    (root / "B" / "report.xlsx").write_bytes(build_xlsx({
        "Sheet1": [["name", "amount"], ["a,b", 1.5], ['He said "hi"', 3]],
    }))
    (root / "data.xlsx").write_bytes(build_xlsx({
        "Sheet1": [["x"], [1]],
        "Sheet2": [["y"], [True]],
    }))
    (root / "notes.txt").write_text("not a workbook")
    return root


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Default configuration delivering archives into a temporary directory."""
    config = Config()
    config.output.directory = temp_dir / "output"
    return config


@pytest.fixture
def sample_config_dict() -> dict:
    """Sample configuration dictionary for testing."""
    return {
        "input": {"max_file_size": 50},
        "output": {
            "directory": "./converted",
            "root_suffix": "_export",
            "overwrite": True,
        },
        "csv": {"line_terminator": "\r\n"},
        "archive": {"compression": "stored"},
        "logging": {
            "level": "DEBUG",
            "file": {"enabled": True, "path": "./logs/test.log"},
        },
    }


@pytest.fixture
def sample_config_file(temp_dir: Path, sample_config_dict: dict) -> Path:
    """Create a sample configuration file for testing."""
    config_file = temp_dir / "test_config.yaml"
    with open(config_file, "w") as f:
        yaml.dump(sample_config_dict, f)
    return config_file


@pytest.fixture
def env_override():
    """Set EXCEL_FOLDER_TO_CSV_* variables and restore them afterwards."""
    class EnvOverride:
        def __init__(self):
            self.original_env: Dict[str, str] = {}
            self.added: List[str] = []

        def set(self, key: str, value: str):
            if key in os.environ:
                self.original_env.setdefault(key, os.environ[key])
            else:
                self.added.append(key)
            os.environ[key] = value

        def clear(self):
            for key in self.added:
                os.environ.pop(key, None)
            os.environ.update(self.original_env)

    override = EnvOverride()
    yield override
    override.clear()


@pytest.fixture(autouse=True)
def reset_global_state():
    """Clear the configuration cache and metrics between tests."""
    config_manager.clear_cache()
    get_metrics_collector().clear_metrics()
    yield
    config_manager.clear_cache()
