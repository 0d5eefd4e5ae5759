"""Command-line interface for the Excel folder to CSV converter.

This module provides the CLI with support for:
- Converting a folder of workbooks into a ZIP of CSV files
- Listing the workbooks a conversion would pick up
- Configuration checking
"""

import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from excel_folder_to_csv import __version__
from excel_folder_to_csv.config.config_manager import ConfigurationError, config_manager
from excel_folder_to_csv.converter import FolderConverter
from excel_folder_to_csv.discovery.file_discovery import (
    default_output_root_name,
    discover_files,
    ensure_runnable,
)
from excel_folder_to_csv.models.data_models import Config, RunStatus, ValidationError
from excel_folder_to_csv.utils.logger import setup_logging, shutdown_logging


EXIT_RUN_ERROR = 1
EXIT_VALIDATION_ERROR = 2


def _load_config(ctx: click.Context) -> Config:
    config_path = ctx.obj.get("config_path")
    try:
        return config_manager.load_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_RUN_ERROR)


@click.group(invoke_without_command=True)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], version: bool) -> None:
    """Excel Folder to CSV - convert every workbook in a folder tree to CSV.

    Each sheet becomes one CSV file; the results are packaged into a ZIP
    archive that mirrors the folder structure under a new root name.
    """
    if version:
        click.echo(f"Excel Folder to CSV v{__version__}")
        return

    # Store config path in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.argument("folder", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--name", "-n", help="Root folder name inside the archive (default: <folder>_csv)")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False, path_type=Path),
              help="Directory the ZIP archive is written to")
@click.option("--overwrite", is_flag=True, help="Replace an existing archive with the same name")
@click.pass_context
def convert(
    ctx: click.Context,
    folder: Path,
    name: Optional[str],
    output_dir: Optional[Path],
    overwrite: bool
) -> None:
    """Convert every Excel workbook below FOLDER into one ZIP of CSV files.

    FOLDER: Directory to convert
    """
    config = _load_config(ctx)

    output = config.output
    if output_dir is not None:
        output = replace(output, directory=output_dir)
    if overwrite:
        output = replace(output, overwrite=True)
    config = replace(config, output=output)

    setup_logging(config.logging)
    try:
        try:
            files = discover_files(folder)
            click.echo(f"Found {len(files)} Excel file(s)")
            ensure_runnable(files)
        except ValidationError as e:
            click.echo(e.message, err=True)
            sys.exit(EXIT_VALIDATION_ERROR)

        root_name = name if name is not None else default_output_root_name(
            files, config.output.root_suffix
        )

        converter = FolderConverter(config=config)
        conversion_run = converter.run(
            files,
            root_name,
            on_progress=lambda progress: click.echo(f"Converting... {progress}%")
        )

        if conversion_run.status is RunStatus.SUCCESS:
            stats = converter.get_statistics()
            click.echo(f"\nConversion complete: {conversion_run.delivered_to}")
            click.echo(f"Files converted: {stats['files_converted']}")
            click.echo(f"CSV files written: {len(conversion_run.entries)}")
            return

        click.echo(conversion_run.error_message, err=True)
        if conversion_run.status is RunStatus.FAILED:
            sys.exit(EXIT_RUN_ERROR)
        sys.exit(EXIT_VALIDATION_ERROR)
    finally:
        shutdown_logging()


@main.command(name="list")
@click.argument("folder", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--limit", default=50, show_default=True, help="Maximum files to show")
def list_files(folder: Path, limit: int) -> None:
    """List the Excel workbooks below FOLDER that would be converted.

    FOLDER: Directory to scan
    """
    try:
        files = discover_files(folder)
    except ValidationError as e:
        click.echo(e.message, err=True)
        sys.exit(EXIT_VALIDATION_ERROR)

    click.echo(f"Found {len(files)} Excel file(s)")
    for selected in files[:limit]:
        click.echo(f"  {selected.relative_path} ({selected.size_kb:.1f} KB)")

    if len(files) > limit:
        click.echo(f"  And {len(files) - limit} more files...")


@main.command()
@click.pass_context
def config_check(ctx: click.Context) -> None:
    """Validate and display current configuration."""
    click.echo("Loading and validating configuration...")
    config = _load_config(ctx)

    click.echo("✓ Configuration loaded successfully")
    click.echo()
    click.echo("Configuration Summary:")
    click.echo(f"  Max file size: {config.input.max_file_size_mb}MB")
    click.echo(f"  Output directory: {config.output.directory}")
    click.echo(f"  Root suffix: {config.output.root_suffix}")
    click.echo(f"  Overwrite existing: {config.output.overwrite}")
    click.echo(f"  Line terminator: {config.csv.line_terminator!r}")
    click.echo(f"  Compression: {config.archive.compression}")
    click.echo(f"  Logging level: {config.logging.level}")


if __name__ == "__main__":
    main()
