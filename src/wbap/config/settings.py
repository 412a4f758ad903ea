"""
Configuration settings management for wbap.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.wbap/config.yaml by default, with the
path overridable via the WBAP_CONFIG environment variable.

The key derivation cost is not a setting: it is fixed per backup format
version so that every backup stays readable.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from wbap.backup.files import ACCEPTED_EXTENSIONS, BACKUP_FILE_EXTENSION

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".wbap"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"


@dataclass
class BackupConfig:
    """Backup export settings."""

    output_dir: str = str(Path.home())
    default_nickname: str = ""
    extension: str = BACKUP_FILE_EXTENSION


@dataclass
class Settings:
    """
    Complete wbap configuration settings.

    Attributes:
        data_dir: Directory holding the local plan database.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        backup: Backup export settings.
    """

    data_dir: str = str(DEFAULT_CONFIG_DIR / "data")
    log_level: str = "INFO"

    backup: BackupConfig = field(default_factory=BackupConfig)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from WBAP_CONFIG environment variable if set,
    otherwise returns the default path (~/.wbap/config.yaml).
    """
    env_path = os.environ.get("WBAP_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.

    Args:
        config_path: Optional path to configuration file. If not provided,
                    uses WBAP_CONFIG environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_data = _settings_to_dict(settings)

    try:
        with open(config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    wbap_data = data.get("wbap", {}) or {}

    if "data_dir" in wbap_data:
        settings.data_dir = str(wbap_data["data_dir"])
    if "log_level" in wbap_data:
        settings.log_level = str(wbap_data["log_level"]).upper()

    backup = data.get("backup", {}) or {}
    if "output_dir" in backup:
        settings.backup.output_dir = str(backup["output_dir"])
    if "default_nickname" in backup:
        settings.backup.default_nickname = str(backup["default_nickname"] or "")
    if "extension" in backup:
        settings.backup.extension = str(backup["extension"]).lower()

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "WBAP_DATA_DIR": ("data_dir", str),
        "WBAP_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "WBAP_BACKUP_DIR": ("backup.output_dir", str),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested_attr(settings, attr_path, converter(value))

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if settings.backup.extension not in ACCEPTED_EXTENSIONS:
        raise ConfigurationError(
            f"Invalid backup extension: {settings.backup.extension}. "
            f"Must be one of: {', '.join(ACCEPTED_EXTENSIONS)}"
        )


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "wbap": {
            "data_dir": settings.data_dir,
            "log_level": settings.log_level,
        },
        "backup": {
            "output_dir": settings.backup.output_dir,
            "default_nickname": settings.backup.default_nickname,
            "extension": settings.backup.extension,
        },
    }
