"""Configuration management for the Excel folder to CSV converter.

This module provides centralized configuration loading with support for
YAML files, environment variable overrides, and validation. Configuration
is read-only: nothing is ever written back.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from excel_folder_to_csv.models.data_models import (
    ArchiveConfig,
    Config,
    CSVConfig,
    InputConfig,
    LoggingConfig,
    OutputConfig,
)


logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class ConfigManager:
    """Manages application configuration loading and validation.

    Configuration Loading Order:
    1. If config_path is provided, load that file
    2. If config_path is None, try to load config/default.yaml
    3. If config/default.yaml doesn't exist, use built-in defaults
    4. Apply EXCEL_FOLDER_TO_CSV_* environment overrides

    Example:
        >>> config = ConfigManager().load_config()
        >>> config.output.root_suffix
        '_csv'
    """

    ENV_PREFIX = "EXCEL_FOLDER_TO_CSV_"

    DEFAULT_CONFIG: Dict[str, Any] = {
        "input": {
            "max_file_size": 100,
        },
        "output": {
            "directory": ".",
            "root_suffix": "_csv",
            "overwrite": False,
            "timestamp_format": "%Y%m%d_%H%M%S",
        },
        "csv": {
            "line_terminator": "\n",
            "encoding": "utf-8",
            "date_format": "%Y-%m-%d",
            "datetime_format": "%Y-%m-%d %H:%M:%S",
            "time_format": "%H:%M:%S",
        },
        "archive": {
            "compression": "deflated",
            "compresslevel": None,
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(run_id)s - %(name)s - %(levelname)s - %(message)s",
            "file": {
                "enabled": False,
                "path": "./logs/excel_folder_to_csv.log",
            },
            "console": {
                "enabled": True,
            },
            "structured": {
                "enabled": False,
            },
        },
    }

    ENV_MAPPINGS: Dict[str, List[str]] = {
        "LOG_LEVEL": ["logging", "level"],
        "OUTPUT_DIR": ["output", "directory"],
        "OVERWRITE": ["output", "overwrite"],
        "ROOT_SUFFIX": ["output", "root_suffix"],
        "LINE_TERMINATOR": ["csv", "line_terminator"],
        "MAX_FILE_SIZE": ["input", "max_file_size"],
        "COMPRESSION": ["archive", "compression"],
    }

    # Values kept as strings even when they look numeric or boolean
    STRING_SETTINGS = {("output", "directory"), ("output", "root_suffix")}

    def __init__(self) -> None:
        self._config_cache: Dict[str, Config] = {}

    def load_config(
        self,
        config_path: Optional[Union[str, Path]] = None,
        use_env_overrides: bool = True
    ) -> Config:
        """Load configuration from file with optional environment overrides.

        Args:
            config_path: Path to a YAML configuration file. If None, will try
                        config/default.yaml, falling back to built-in defaults
            use_env_overrides: Whether to apply environment variable overrides

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigurationError: If configuration loading or validation fails
        """
        cache_key = f"{config_path}:{use_env_overrides}"
        if cache_key in self._config_cache:
            logger.debug(f"Using cached configuration for {cache_key}")
            return self._config_cache[cache_key]

        try:
            config_dict = self._load_config_dict(config_path)

            if use_env_overrides:
                config_dict = self._apply_env_overrides(config_dict)

            config = self._dict_to_config(config_dict)
        except ConfigurationError:
            raise
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        self._config_cache[cache_key] = config
        logger.debug(f"Configuration loaded from {config_path or 'defaults'}")
        return config

    def _load_config_dict(self, config_path: Optional[Union[str, Path]]) -> Dict[str, Any]:
        """Load configuration dictionary from file or defaults."""
        defaults = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_path is None:
            default_config_path = Path("config/default.yaml")
            if not default_config_path.exists():
                return defaults
            config_path = default_config_path

        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_file}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Top level of {config_file} must be a mapping")

        logger.debug(f"Loaded configuration from {config_file}")
        return self._deep_merge(defaults, file_config)

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for suffix, config_path in self.ENV_MAPPINGS.items():
            env_var = f"{self.ENV_PREFIX}{suffix}"
            env_value = os.getenv(env_var)
            if env_value is None:
                continue

            converted = self._convert_env_value(env_value, config_path)
            self._set_nested_value(config_dict, config_path, converted)
            logger.debug(f"Applied environment override: {env_var}={converted!r}")

        return config_dict

    def _convert_env_value(self, value: str, config_path: List[str]) -> Any:
        """Convert environment variable string to appropriate type."""
        if tuple(config_path) in self.STRING_SETTINGS:
            return value

        if config_path == ["csv", "line_terminator"]:
            return value.encode("utf-8").decode("unicode_escape")

        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            if "." not in value:
                return int(value)
            return float(value)
        except ValueError:
            pass

        return value

    @staticmethod
    def _set_nested_value(dictionary: Dict[str, Any], path: List[str], value: Any) -> None:
        for key in path[:-1]:
            dictionary = dictionary.setdefault(key, {})
        dictionary[path[-1]] = value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> Config:
        """Convert configuration dictionary to Config object."""
        input_section = config_dict.get("input") or {}
        output = config_dict.get("output") or {}
        csv_section = config_dict.get("csv") or {}
        archive = config_dict.get("archive") or {}
        logging_section = config_dict.get("logging") or {}

        return Config(
            input=InputConfig(
                max_file_size_mb=input_section.get("max_file_size", 100),
            ),
            output=OutputConfig(
                directory=Path(output.get("directory") or "."),
                root_suffix=str(output.get("root_suffix", "_csv")),
                overwrite=bool(output.get("overwrite", False)),
                timestamp_format=output.get("timestamp_format", "%Y%m%d_%H%M%S"),
            ),
            csv=CSVConfig(
                line_terminator=csv_section.get("line_terminator", "\n"),
                encoding=csv_section.get("encoding", "utf-8"),
                date_format=csv_section.get("date_format", "%Y-%m-%d"),
                datetime_format=csv_section.get("datetime_format", "%Y-%m-%d %H:%M:%S"),
                time_format=csv_section.get("time_format", "%H:%M:%S"),
            ),
            archive=ArchiveConfig(
                compression=archive.get("compression", "deflated"),
                compresslevel=archive.get("compresslevel"),
            ),
            logging=LoggingConfig(
                level=logging_section.get("level", "INFO"),
                format=logging_section.get("format", self.DEFAULT_CONFIG["logging"]["format"]),
                file_enabled=(logging_section.get("file") or {}).get("enabled", False),
                file_path=Path((logging_section.get("file") or {}).get(
                    "path", "./logs/excel_folder_to_csv.log")),
                console_enabled=(logging_section.get("console") or {}).get("enabled", True),
                structured_enabled=(logging_section.get("structured") or {}).get("enabled", False),
            ),
        )

    def clear_cache(self) -> None:
        """Clear configuration cache."""
        self._config_cache.clear()


# Global configuration manager instance
config_manager = ConfigManager()
