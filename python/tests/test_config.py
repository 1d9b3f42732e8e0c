"""
Tests for configuration loading.
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from archive_ops import ArchiveSettings, InvalidFileModeError, load_config, load_settings
from archive_ops.config import DEFAULT_CONFIG, _convert_env_value, _deep_merge, find_config_file


class TestLoadConfig(unittest.TestCase):
    """Test YAML loading, merging and environment overrides."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        env = {k: v for k, v in os.environ.items() if not k.startswith("ARCHIVE_FILE__")}
        self.env_patch = patch.dict(os.environ, env, clear=True)
        self.env_patch.start()

    def tearDown(self):
        import shutil

        self.env_patch.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _config_file(self, text: str) -> str:
        path = self.temp_dir / "archive-config.yml"
        path.write_text(text)
        return str(path)

    def test_defaults_without_file(self):
        """Test that a missing file yields the defaults."""
        config = load_config(str(self.temp_dir / "missing.yml"))
        self.assertEqual(config, DEFAULT_CONFIG)

    def test_defaults_are_not_mutated(self):
        """Test that loading never changes DEFAULT_CONFIG."""
        path = self._config_file("formats:\n  zip:\n    compress_level: 9\n")
        with patch.dict(os.environ, {"ARCHIVE_FILE__WALKER__MAX_SYMLINK_HOPS": "5"}):
            load_config(path)
        self.assertEqual(DEFAULT_CONFIG["formats"]["zip"]["compress_level"], 6)
        self.assertEqual(DEFAULT_CONFIG["walker"]["max_symlink_hops"], 40)

    def test_file_values_are_deep_merged(self):
        """Test that a partial file keeps sibling defaults."""
        path = self._config_file(
            "formats:\n  zip:\n    normalize_metadata: false\noutput:\n  delete_on_failure: false\n"
        )

        config = load_config(path)

        self.assertFalse(config["formats"]["zip"]["normalize_metadata"])
        self.assertEqual(config["formats"]["zip"]["normalized_mode"], "0644")
        self.assertFalse(config["output"]["delete_on_failure"])
        self.assertTrue(config["output"]["create_parent_dirs"])

    def test_malformed_file_falls_back_to_defaults(self):
        """Test that invalid YAML is ignored with a warning."""
        path = self._config_file("formats: [unclosed\n")
        self.assertEqual(load_config(path), DEFAULT_CONFIG)

    def test_non_mapping_file_falls_back_to_defaults(self):
        """Test a YAML document that is not a mapping."""
        path = self._config_file("- just\n- a list\n")
        self.assertEqual(load_config(path), DEFAULT_CONFIG)

    def test_environment_overrides(self):
        """Test ARCHIVE_FILE__ variables."""
        env = {
            "ARCHIVE_FILE__FORMATS__ZIP__COMPRESS_LEVEL": "9",
            "ARCHIVE_FILE__FORMATS__TAR_GZ__DEFAULT_MODE": "0640",
            "ARCHIVE_FILE__OUTPUT__DELETE_ON_FAILURE": "false",
            "ARCHIVE_FILE__LOGGING__LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env):
            config = load_config(str(self.temp_dir / "missing.yml"))

        self.assertEqual(config["formats"]["zip"]["compress_level"], 9)
        self.assertEqual(config["formats"]["tar_gz"]["default_mode"], "0640")
        self.assertFalse(config["output"]["delete_on_failure"])
        self.assertEqual(config["logging"]["level"], "DEBUG")

    def test_finds_config_in_directory(self):
        """Test config file discovery."""
        self.assertIsNone(find_config_file(self.temp_dir))
        hidden = self.temp_dir / ".archive-config.yml"
        hidden.write_text("logging:\n  level: WARNING\n")
        self.assertEqual(find_config_file(self.temp_dir), hidden)


class TestArchiveSettings(unittest.TestCase):
    """Test the typed settings view."""

    def test_defaults(self):
        """Test settings built from the default config."""
        settings = ArchiveSettings.from_config(DEFAULT_CONFIG)

        self.assertEqual(settings, ArchiveSettings())
        self.assertEqual(settings.max_symlink_hops, 40)
        self.assertEqual(settings.output.parent_dir_mode, 0o755)
        self.assertEqual(settings.zip.normalized_date_time, (1981, 4, 10, 0, 0, 0))
        self.assertEqual(settings.zip.zero_date_time, (1980, 1, 1, 0, 0, 0))
        self.assertEqual(settings.zip.normalized_mode, 0o644)
        self.assertEqual(settings.tar_gz.default_mode, 0o600)
        self.assertTrue(settings.tar_gz.preserve_walk_mtime)

    def test_yaml_octal_integers_are_accepted(self):
        """Test that an unquoted 0644 (parsed by YAML as octal) is kept."""
        config = _deep_merge(DEFAULT_CONFIG, {"formats": {"zip": {"normalized_mode": 0o600}}})
        self.assertEqual(ArchiveSettings.from_config(config).zip.normalized_mode, 0o600)

    def test_invalid_values(self):
        """Test settings validation."""
        with self.assertRaises(InvalidFileModeError):
            ArchiveSettings.from_config(
                _deep_merge(DEFAULT_CONFIG, {"formats": {"tar_gz": {"default_mode": "abc"}}})
            )
        with self.assertRaises(ValueError):
            ArchiveSettings.from_config(
                _deep_merge(DEFAULT_CONFIG, {"formats": {"zip": {"compress_level": 12}}})
            )
        with self.assertRaises(ValueError):
            ArchiveSettings.from_config(
                _deep_merge(
                    DEFAULT_CONFIG,
                    {"formats": {"zip": {"zero_date_time": [1970, 1, 1, 0, 0, 0]}}},
                )
            )
        with self.assertRaises(ValueError):
            ArchiveSettings.from_config(
                _deep_merge(DEFAULT_CONFIG, {"walker": {"max_symlink_hops": 0}})
            )

    def test_load_settings_from_file(self):
        """Test load_settings end to end."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "cfg.yml"
            path.write_text("walker:\n  max_symlink_hops: 8\n")
            settings = load_settings(str(path))
        self.assertEqual(settings.max_symlink_hops, 8)


class TestConvertEnvValue(unittest.TestCase):
    """Test environment value conversion."""

    def test_conversions(self):
        """Test each supported type."""
        self.assertIs(_convert_env_value("true"), True)
        self.assertIs(_convert_env_value("off"), False)
        self.assertEqual(_convert_env_value("12"), 12)
        self.assertEqual(_convert_env_value("1.5"), 1.5)
        self.assertEqual(_convert_env_value("0755"), "0755")
        self.assertEqual(_convert_env_value("0"), 0)
        self.assertEqual(_convert_env_value("a, b"), ["a", "b"])
        self.assertEqual(_convert_env_value("INFO"), "INFO")


if __name__ == "__main__":
    unittest.main()
