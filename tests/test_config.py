"""Tests for configuration settings."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from wbap.config.settings import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    BackupConfig,
    ConfigurationError,
    Settings,
    _apply_environment_overrides,
    _set_nested_attr,
    _settings_to_dict,
    _validate_config,
    get_config_path,
    load_config,
    save_config,
)


class TestSettings(unittest.TestCase):
    """Tests for Settings defaults."""

    def test_default_settings(self) -> None:
        """Test default values."""
        settings = Settings()

        self.assertEqual(settings.data_dir, str(DEFAULT_CONFIG_DIR / "data"))
        self.assertEqual(settings.log_level, "INFO")
        self.assertIsInstance(settings.backup, BackupConfig)
        self.assertEqual(settings.backup.extension, ".wbap")
        self.assertEqual(settings.backup.default_nickname, "")

    def test_backup_config_not_shared(self) -> None:
        """Test that each Settings gets its own BackupConfig."""
        first = Settings()
        second = Settings()
        first.backup.default_nickname = "Alex"

        self.assertEqual(second.backup.default_nickname, "")


class TestGetConfigPath(unittest.TestCase):
    """Tests for get_config_path function."""

    def test_default_config_path(self) -> None:
        """Test default config path when no environment variable."""
        with patch.dict(os.environ, {}, clear=True):
            path = get_config_path()
            self.assertEqual(path, DEFAULT_CONFIG_FILE)

    def test_config_path_from_environment(self) -> None:
        """Test config path from environment variable."""
        with patch.dict(os.environ, {"WBAP_CONFIG": "/custom/path/config.yaml"}):
            path = get_config_path()
            self.assertEqual(path, Path("/custom/path/config.yaml"))


class TestLoadConfig(unittest.TestCase):
    """Tests for load_config function."""

    def setUp(self) -> None:
        """Create temporary directory for tests."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "config.yaml"
        self.env = patch.dict(os.environ, {}, clear=True)
        self.env.start()

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        import shutil

        self.env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_config_nonexistent_file_returns_defaults(self) -> None:
        """Test loading config when file doesn't exist returns defaults."""
        settings = load_config(Path(self.temp_dir) / "nonexistent.yaml")

        self.assertEqual(settings.log_level, "INFO")
        self.assertEqual(settings.backup.extension, ".wbap")

    def test_load_config_from_yaml(self) -> None:
        """Test loading config from YAML file."""
        self.config_path.write_text(
            """
wbap:
  data_dir: /custom/data
  log_level: debug

backup:
  output_dir: /custom/backups
  default_nickname: Alex
  extension: .JSON
"""
        )
        settings = load_config(self.config_path)

        self.assertEqual(settings.data_dir, "/custom/data")
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertEqual(settings.backup.output_dir, "/custom/backups")
        self.assertEqual(settings.backup.default_nickname, "Alex")
        self.assertEqual(settings.backup.extension, ".json")

    def test_load_config_partial(self) -> None:
        """Test that missing sections keep their defaults."""
        self.config_path.write_text("wbap:\n  log_level: WARNING\n")

        settings = load_config(self.config_path)

        self.assertEqual(settings.log_level, "WARNING")
        self.assertEqual(settings.backup.extension, ".wbap")

    def test_load_config_empty_file(self) -> None:
        """Test that an empty file gives defaults."""
        self.config_path.write_text("")

        settings = load_config(self.config_path)

        self.assertEqual(settings.log_level, "INFO")

    def test_load_config_null_nickname(self) -> None:
        """Test that a null nickname becomes an empty string."""
        self.config_path.write_text("backup:\n  default_nickname:\n")

        settings = load_config(self.config_path)

        self.assertEqual(settings.backup.default_nickname, "")

    def test_load_config_invalid_yaml(self) -> None:
        """Test that invalid YAML raises ConfigurationError."""
        self.config_path.write_text("wbap: [unclosed\n")

        with self.assertRaises(ConfigurationError) as ctx:
            load_config(self.config_path)

        self.assertIn("Invalid YAML", str(ctx.exception))

    def test_load_config_not_a_mapping(self) -> None:
        """Test that a YAML list is rejected."""
        self.config_path.write_text("- one\n- two\n")

        with self.assertRaises(ConfigurationError):
            load_config(self.config_path)

    def test_load_config_invalid_extension(self) -> None:
        """Test that an unsupported extension is rejected."""
        self.config_path.write_text("backup:\n  extension: .zip\n")

        with self.assertRaises(ConfigurationError) as ctx:
            load_config(self.config_path)

        self.assertIn("Invalid backup extension", str(ctx.exception))

    def test_load_config_from_environment_path(self) -> None:
        """Test that WBAP_CONFIG selects the file."""
        self.config_path.write_text("wbap:\n  log_level: ERROR\n")

        with patch.dict(os.environ, {"WBAP_CONFIG": str(self.config_path)}):
            settings = load_config()

        self.assertEqual(settings.log_level, "ERROR")

    def test_environment_overrides_file(self) -> None:
        """Test that environment variables win over the file."""
        self.config_path.write_text("wbap:\n  data_dir: /file/data\n")

        with patch.dict(os.environ, {"WBAP_DATA_DIR": "/env/data"}):
            settings = load_config(self.config_path)

        self.assertEqual(settings.data_dir, "/env/data")


class TestSaveConfig(unittest.TestCase):
    """Tests for save_config function."""

    def setUp(self) -> None:
        """Create temporary directory for tests."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "config.yaml"

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        import shutil

        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_config_creates_parent_directory(self) -> None:
        """Test save_config creates parent directory if needed."""
        nested_path = Path(self.temp_dir) / "nested" / "dir" / "config.yaml"

        save_config(Settings(), nested_path)

        self.assertTrue(nested_path.exists())

    def test_save_and_load_roundtrip(self) -> None:
        """Test that saved config can be loaded back."""
        settings = Settings()
        settings.data_dir = "/custom/data"
        settings.log_level = "DEBUG"
        settings.backup.output_dir = "/custom/backups"
        settings.backup.default_nickname = "Alex"
        settings.backup.extension = ".json"

        save_config(settings, self.config_path)
        with patch.dict(os.environ, {}, clear=True):
            loaded = load_config(self.config_path)

        self.assertEqual(loaded, settings)

    def test_save_config_write_error(self) -> None:
        """Test that a write failure raises ConfigurationError."""
        with patch("builtins.open", side_effect=PermissionError("denied")):
            with self.assertRaises(ConfigurationError):
                save_config(Settings(), self.config_path)


class TestApplyEnvironmentOverrides(unittest.TestCase):
    """Tests for _apply_environment_overrides function."""

    def test_data_dir_override(self) -> None:
        """Test WBAP_DATA_DIR."""
        with patch.dict(os.environ, {"WBAP_DATA_DIR": "/env/data"}):
            settings = _apply_environment_overrides(Settings())
        self.assertEqual(settings.data_dir, "/env/data")

    def test_log_level_override_uppercased(self) -> None:
        """Test WBAP_LOG_LEVEL is uppercased."""
        with patch.dict(os.environ, {"WBAP_LOG_LEVEL": "warning"}):
            settings = _apply_environment_overrides(Settings())
        self.assertEqual(settings.log_level, "WARNING")

    def test_backup_dir_override(self) -> None:
        """Test WBAP_BACKUP_DIR sets the nested output directory."""
        with patch.dict(os.environ, {"WBAP_BACKUP_DIR": "/env/backups"}):
            settings = _apply_environment_overrides(Settings())
        self.assertEqual(settings.backup.output_dir, "/env/backups")


class TestSetNestedAttr(unittest.TestCase):
    """Tests for _set_nested_attr function."""

    def test_set_simple_attr(self) -> None:
        """Test setting a simple attribute."""
        settings = Settings()
        _set_nested_attr(settings, "data_dir", "/new/path")
        self.assertEqual(settings.data_dir, "/new/path")

    def test_set_nested_attr(self) -> None:
        """Test setting a nested attribute."""
        settings = Settings()
        _set_nested_attr(settings, "backup.default_nickname", "Sam")
        self.assertEqual(settings.backup.default_nickname, "Sam")


class TestValidateConfig(unittest.TestCase):
    """Tests for _validate_config function."""

    def test_valid_config(self) -> None:
        """Test validation passes for valid config."""
        _validate_config(Settings())

    def test_invalid_log_level(self) -> None:
        """Test validation fails for invalid log level."""
        settings = Settings()
        settings.log_level = "LOUD"

        with self.assertRaises(ConfigurationError) as ctx:
            _validate_config(settings)

        self.assertIn("Invalid log_level", str(ctx.exception))
        self.assertIn("LOUD", str(ctx.exception))

    def test_json_extension_valid(self) -> None:
        """Test that .json is an accepted extension."""
        settings = Settings()
        settings.backup.extension = ".json"
        _validate_config(settings)


class TestSettingsToDict(unittest.TestCase):
    """Tests for _settings_to_dict function."""

    def test_sections(self) -> None:
        """Test the YAML layout."""
        data = _settings_to_dict(Settings())

        self.assertEqual(set(data), {"wbap", "backup"})
        self.assertEqual(data["wbap"]["log_level"], "INFO")
        self.assertEqual(data["backup"]["extension"], ".wbap")


if __name__ == "__main__":
    unittest.main()
