"""
Configuration management for wbap.

This module handles loading, validating, and saving configuration settings.
"""

from wbap.config.settings import (
    DEFAULT_CONFIG_DIR,
    BackupConfig,
    ConfigurationError,
    Settings,
    load_config,
    save_config,
)

__all__ = [
    "Settings",
    "BackupConfig",
    "load_config",
    "save_config",
    "ConfigurationError",
    "DEFAULT_CONFIG_DIR",
]
