"""Tests for the command-line interface."""

import zipfile
from pathlib import Path

import pytest
from click.testing import CliRunner

from excel_folder_to_csv import cli, main as main_module
from excel_folder_to_csv.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep the CLI from reconfiguring the root logger during tests."""
    calls = []
    monkeypatch.setattr(cli, "setup_logging", lambda config: calls.append(config))
    monkeypatch.setattr(cli, "shutdown_logging", lambda: calls.append("shutdown"))
    return calls


class TestCLI:
    """Test cases for CLI commands."""

    def test_version_flag(self, runner):
        """Test --version flag."""
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "Excel Folder to CSV v1.0.0" in result.output

    def test_help_output(self, runner):
        """Test help output when no command provided."""
        result = runner.invoke(main, [])

        assert result.exit_code == 0
        assert "convert" in result.output
        assert "list" in result.output
        assert "config-check" in result.output


class TestConvertCommand:
    """Test cases for the convert command."""

    def test_convert_success(self, runner, sample_folder: Path, temp_dir: Path, quiet_logging):
        """Test converting a folder end to end."""
        out_dir = temp_dir / "out"

        result = runner.invoke(main, ["convert", str(sample_folder), "-o", str(out_dir)])

        assert result.exit_code == 0, result.output
        assert "Found 2 Excel file(s)" in result.output
        assert "Converting... 50%" in result.output
        assert "Converting... 100%" in result.output
        assert "Conversion complete" in result.output
        assert "Files converted: 2" in result.output
        assert "CSV files written: 3" in result.output

        archive = out_dir / "A_csv.zip"
        with zipfile.ZipFile(archive) as zf:
            assert sorted(zf.namelist()) == [
                "A_csv/B/report.csv",
                "A_csv/data_Sheet1.csv",
                "A_csv/data_Sheet2.csv",
            ]

        assert quiet_logging[-1] == "shutdown"

    def test_convert_custom_name(self, runner, sample_folder: Path, temp_dir: Path):
        """Test the --name option."""
        out_dir = temp_dir / "out"

        result = runner.invoke(main, ["convert", str(sample_folder), "-n", "export", "-o", str(out_dir)])

        assert result.exit_code == 0, result.output
        with zipfile.ZipFile(out_dir / "export.zip") as zf:
            assert all(name.startswith("export/") for name in zf.namelist())

    def test_convert_existing_archive_gets_timestamp(self, runner, sample_folder: Path, temp_dir: Path):
        """Test that a second run does not replace the first archive."""
        out_dir = temp_dir / "out"

        runner.invoke(main, ["convert", str(sample_folder), "-o", str(out_dir)])
        result = runner.invoke(main, ["convert", str(sample_folder), "-o", str(out_dir)])

        assert result.exit_code == 0, result.output
        assert len(list(out_dir.glob("A_csv*.zip"))) == 2

    def test_convert_overwrite(self, runner, sample_folder: Path, temp_dir: Path):
        """Test that --overwrite replaces the existing archive."""
        out_dir = temp_dir / "out"

        runner.invoke(main, ["convert", str(sample_folder), "-o", str(out_dir)])
        result = runner.invoke(main, ["convert", str(sample_folder), "-o", str(out_dir), "--overwrite"])

        assert result.exit_code == 0, result.output
        assert [p.name for p in out_dir.iterdir()] == ["A_csv.zip"]

    def test_convert_no_workbooks(self, runner, temp_dir: Path):
        """Test that a folder without workbooks is a validation error."""
        folder = temp_dir / "docs"
        folder.mkdir()
        (folder / "readme.txt").write_text("text")

        result = runner.invoke(main, ["convert", str(folder), "-o", str(temp_dir / "out")])

        assert result.exit_code == cli.EXIT_VALIDATION_ERROR
        assert "Found 0 Excel file(s)" in result.output
        assert not (temp_dir / "out").exists()

    def test_convert_corrupt_workbook(self, runner, temp_dir: Path):
        """Test that a corrupt workbook fails the run."""
        folder = temp_dir / "broken"
        folder.mkdir()
        (folder / "bad.xlsx").write_bytes(b"PK\x03\x04 not really a zip")

        result = runner.invoke(main, ["convert", str(folder), "-o", str(temp_dir / "out")])

        assert result.exit_code == cli.EXIT_RUN_ERROR
        assert "Converting..." not in result.output
        assert not (temp_dir / "out").exists()

    def test_convert_missing_folder(self, runner, temp_dir: Path):
        """Test that click rejects a folder that does not exist."""
        result = runner.invoke(main, ["convert", str(temp_dir / "missing")])
        assert result.exit_code == 2

    def test_convert_with_config_file(self, runner, sample_folder: Path, temp_dir: Path):
        """Test that --config is honoured."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text(
            f"output:\n  directory: '{temp_dir / 'configured'}'\n  root_suffix: _tables\n"
        )

        result = runner.invoke(main, ["--config", str(config_file), "convert", str(sample_folder)])

        assert result.exit_code == 0, result.output
        assert (temp_dir / "configured" / "A_tables.zip").exists()


class TestListCommand:
    """Test cases for the list command."""

    def test_list(self, runner, sample_folder: Path):
        """Test listing the workbooks of a folder."""
        result = runner.invoke(main, ["list", str(sample_folder)])

        assert result.exit_code == 0
        assert "Found 2 Excel file(s)" in result.output
        assert "A/B/report.xlsx" in result.output
        assert "A/data.xlsx" in result.output
        assert "notes.txt" not in result.output

    def test_list_limit(self, runner, sample_folder: Path):
        """Test the --limit option."""
        result = runner.invoke(main, ["list", str(sample_folder), "--limit", "1"])

        assert result.exit_code == 0
        assert "And 1 more files..." in result.output


class TestConfigCheckCommand:
    """Test cases for the config-check command."""

    def test_config_check(self, runner, sample_config_file: Path):
        """Test displaying a configuration file."""
        result = runner.invoke(main, ["--config", str(sample_config_file), "config-check"])

        assert result.exit_code == 0
        assert "Configuration loaded successfully" in result.output
        assert "Root suffix: _export" in result.output
        assert "Compression: stored" in result.output

    def test_config_check_invalid(self, runner, temp_dir: Path):
        """Test that an invalid configuration exits with an error."""
        config_file = temp_dir / "bad.yaml"
        config_file.write_text("csv:\n  line_terminator: ';'\n")

        result = runner.invoke(main, ["--config", str(config_file), "config-check"])

        assert result.exit_code == cli.EXIT_RUN_ERROR
        assert "Configuration error" in result.output


class TestMainEntryPoint:
    """Test cases for the console script wrapper."""

    def test_run_keyboard_interrupt(self, monkeypatch, capsys):
        """Test that Ctrl+C exits with status 1."""
        def interrupted():
            raise KeyboardInterrupt

        monkeypatch.setattr(main_module, "main", interrupted)

        with pytest.raises(SystemExit) as exc_info:
            main_module.run()

        assert exc_info.value.code == 1
        assert "Operation cancelled by user" in capsys.readouterr().out

    def test_run_invokes_cli(self, monkeypatch):
        """Test that run() delegates to the click group."""
        called = []
        monkeypatch.setattr(main_module, "main", lambda: called.append(True))

        main_module.run()

        assert called == [True]
