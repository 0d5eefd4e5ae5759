"""Unit tests for spreadsheet discovery."""

from pathlib import Path

import pytest

from excel_folder_to_csv.discovery.file_discovery import (
    FALLBACK_ROOT_NAME,
    NO_FILES_MESSAGE,
    default_output_root_name,
    discover_files,
    ensure_runnable,
    filter_spreadsheets,
    is_spreadsheet,
)
from excel_folder_to_csv.models.data_models import SelectedFile, ValidationError


class TestIsSpreadsheet:
    """Test cases for spreadsheet name matching."""

    @pytest.mark.parametrize("name", [
        "report.xlsx", "old.xls", "UPPER.XLSX", "Mixed.XlS", "A/B/nested.xlsx",
    ])
    def test_spreadsheet_names(self, name):
        """Test names that are recognized as spreadsheets."""
        assert is_spreadsheet(name)

    @pytest.mark.parametrize("name", [
        "notes.txt", "data.csv", "macro.xlsm", "report.xlsx.bak", "xlsx", ".xls.txt",
    ])
    def test_other_names(self, name):
        """Test names that are filtered out."""
        assert not is_spreadsheet(name)


class TestDiscoverFiles:
    """Test cases for discover_files."""

    def test_discovers_spreadsheets_recursively(self, sample_folder: Path):
        """Test that nested workbooks are found and other files skipped."""
        files = discover_files(sample_folder)

        assert [f.relative_path for f in files] == ["A/data.xlsx", "A/B/report.xlsx"]

    def test_records_are_lazy(self, sample_folder: Path):
        """Test that records point at the files instead of holding their bytes."""
        files = discover_files(sample_folder)

        for selected in files:
            assert selected.content is None
            assert selected.source_path.is_file()
            assert selected.size_bytes == selected.source_path.stat().st_size
            assert selected.read_bytes() == selected.source_path.read_bytes()

    def test_sorted_order(self, temp_dir: Path):
        """Test that directories and files are visited in sorted order."""
        root = temp_dir / "root"
        for relative in ("b/z.xlsx", "b/a.xls", "a/m.xlsx", "c.xlsx"):
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"x")

        files = discover_files(root)

        assert [f.relative_path for f in files] == [
            "root/c.xlsx", "root/a/m.xlsx", "root/b/a.xls", "root/b/z.xlsx",
        ]

    def test_case_insensitive_extensions(self, temp_dir: Path):
        """Test that upper-case extensions are accepted."""
        root = temp_dir / "data"
        root.mkdir()
        (root / "REPORT.XLSX").write_bytes(b"x")

        assert [f.name for f in discover_files(root)] == ["REPORT.XLSX"]

    def test_no_spreadsheets(self, temp_dir: Path):
        """Test that a folder with only other files yields an empty list."""
        root = temp_dir / "docs"
        root.mkdir()
        (root / "readme.txt").write_text("hello")

        assert discover_files(root) == []

    def test_not_a_directory(self, temp_dir: Path):
        """Test that a missing folder raises ValidationError."""
        with pytest.raises(ValidationError, match="Not a directory"):
            discover_files(temp_dir / "missing")

    def test_file_instead_of_directory(self, temp_dir: Path):
        """Test that a regular file raises ValidationError."""
        path = temp_dir / "book.xlsx"
        path.write_bytes(b"x")

        with pytest.raises(ValidationError):
            discover_files(path)


class TestSelectionHelpers:
    """Test cases for filtering and naming helpers."""

    def test_filter_spreadsheets(self):
        """Test filtering an already built record list."""
        files = [
            SelectedFile("A/report.xlsx", content=b"x"),
            SelectedFile("A/notes.txt", content=b"x"),
            SelectedFile("A/B/old.XLS", content=b"x"),
        ]

        result = filter_spreadsheets(files)

        assert [f.relative_path for f in result] == ["A/report.xlsx", "A/B/old.XLS"]

    def test_default_output_root_name(self):
        """Test that the default root is the first file's root plus a suffix."""
        files = [SelectedFile("Finance/q1.xlsx", content=b"x")]

        assert default_output_root_name(files) == "Finance_csv"
        assert default_output_root_name(files, suffix="_export") == "Finance_export"

    def test_default_output_root_name_without_files(self):
        """Test the fallback root name for an empty selection."""
        assert default_output_root_name([]) == FALLBACK_ROOT_NAME == "converted_csvs"

    def test_ensure_runnable(self):
        """Test that an empty selection is not runnable."""
        with pytest.raises(ValidationError) as exc_info:
            ensure_runnable([])

        assert exc_info.value.message == NO_FILES_MESSAGE

        ensure_runnable([SelectedFile("A/report.xlsx", content=b"x")])
