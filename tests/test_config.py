"""Tests for settings loading."""

import os
import tempfile
import unittest
from unittest.mock import patch

from fitness_data.config import Settings, load_settings
from fitness_data.errors import ConfigError

NO_ENV_FILE = "/nonexistent/.env"


class LoadSettingsTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.config_path = os.path.join(self.tmp.name, "config.yaml")

    def write_config(self, text):
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write(text)

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = load_settings(env_file=NO_ENV_FILE, config_path=None)
        self.assertEqual(settings.weight_unit, "lbs")
        self.assertEqual(settings.main_branch, "main")
        self.assertEqual(settings.e1rm_history_window, 20)
        self.assertTrue(settings.data_dir.endswith("fitness-data"))

    @patch.dict(os.environ, {"WEIGHT_UNIT": "KG", "DATA_REPO": "athlete/training"}, clear=True)
    def test_environment_overrides_config_file(self):
        self.write_config("fitness_data:\n  weight_unit: lbs\n  timezone: Europe/Berlin\n  e1rm_history_window: 30\n")
        settings = load_settings(env_file=NO_ENV_FILE, config_path=self.config_path)
        self.assertEqual(settings.weight_unit, "kg")
        self.assertEqual(settings.timezone, "Europe/Berlin")
        self.assertEqual(settings.e1rm_history_window, 30)
        self.assertEqual(settings.data_repo, "athlete/training")

    @patch.dict(os.environ, {}, clear=True)
    def test_env_file_loaded(self):
        env_path = os.path.join(self.tmp.name, ".env")
        with open(env_path, "w", encoding="utf-8") as f:
            f.write("GITHUB_TOKEN=ghp_example\nE1RM_HISTORY_WINDOW=12\n")
        settings = load_settings(env_file=env_path, config_path=None)
        self.assertEqual(settings.github_token, "ghp_example")
        self.assertEqual(settings.e1rm_history_window, 12)

    @patch.dict(os.environ, {"WEIGHT_UNIT": "stone"}, clear=True)
    def test_unsupported_unit(self):
        with self.assertRaises(ConfigError):
            load_settings(env_file=NO_ENV_FILE, config_path=None)

    @patch.dict(os.environ, {"E1RM_HISTORY_WINDOW": "lots"}, clear=True)
    def test_bad_window(self):
        with self.assertRaises(ConfigError):
            load_settings(env_file=NO_ENV_FILE, config_path=None)

    @patch.dict(os.environ, {}, clear=True)
    def test_bad_config_section(self):
        self.write_config("fitness_data: [1, 2]\n")
        with self.assertRaises(ConfigError):
            load_settings(env_file=NO_ENV_FILE, config_path=self.config_path)

    @patch.dict(os.environ, {}, clear=True)
    def test_unknown_config_keys_ignored(self):
        self.write_config("fitness_data:\n  coach_name: Sam\n")
        settings = load_settings(env_file=NO_ENV_FILE, config_path=self.config_path)
        self.assertFalse(hasattr(settings, "coach_name"))


class RemoteTests(unittest.TestCase):
    def test_require_remote_lists_missing(self):
        with self.assertRaises(ConfigError) as ctx:
            Settings().require_remote()
        self.assertIn("GITHUB_TOKEN", str(ctx.exception))
        self.assertIn("DATA_REPO", str(ctx.exception))

    def test_require_remote_checks_repo_format(self):
        with self.assertRaises(ConfigError):
            Settings(github_token="t", data_repo="training").require_remote()
        Settings(github_token="t", data_repo="athlete/training").require_remote()

    def test_remote_url(self):
        self.assertEqual(Settings(data_repo="athlete/training").remote_url, "https://github.com/athlete/training.git")
        self.assertEqual(Settings(data_repo_url="git@host:x.git").remote_url, "git@host:x.git")
        self.assertEqual(Settings().remote_url, "")


if __name__ == "__main__":
    unittest.main()
