"""
Configuration loading.

Settings come from the process environment (optionally seeded from a .env
file) with an optional config.yaml supplying defaults under a
``fitness_data:`` section.
"""

import os
from dataclasses import dataclass

import yaml
from dotenv import load_dotenv

from fitness_data.errors import ConfigError
from fitness_data.units import SUPPORTED_UNITS

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_HISTORY_WINDOW = 20

ENV_KEYS = {
    "github_token": "GITHUB_TOKEN",
    "data_repo": "DATA_REPO",
    "data_repo_url": "DATA_REPO_URL",
    "api_url": "GITHUB_API_URL",
    "data_dir": "DATA_DIR",
    "main_branch": "MAIN_BRANCH",
    "weight_unit": "WEIGHT_UNIT",
    "timezone": "TIMEZONE",
    "e1rm_history_window": "E1RM_HISTORY_WINDOW",
    "aliases_file": "EXERCISE_ALIASES_FILE",
}


def default_data_dir():
    """Persistent volume when mounted, temp dir otherwise."""
    base = "/data" if os.path.isdir("/data") else "/tmp"
    return os.path.join(base, "fitness-data")


@dataclass
class Settings:
    github_token: str = ""
    data_repo: str = ""
    data_repo_url: str = ""
    api_url: str = DEFAULT_API_URL
    data_dir: str = ""
    main_branch: str = "main"
    weight_unit: str = "lbs"
    timezone: str = DEFAULT_TIMEZONE
    e1rm_history_window: int = DEFAULT_HISTORY_WINDOW
    aliases_file: str = "exercise_aliases.yaml"

    @property
    def remote_url(self):
        """Clone URL of the data repository (without credentials)."""
        if self.data_repo_url:
            return self.data_repo_url
        if not self.data_repo:
            return ""
        return f"https://github.com/{self.data_repo}.git"

    def require_remote(self):
        """Raise ConfigError unless the store can be reached."""
        missing = []
        if not self.github_token:
            missing.append(ENV_KEYS["github_token"])
        if not self.data_repo:
            missing.append(ENV_KEYS["data_repo"])
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if self.data_repo.count("/") != 1:
            raise ConfigError(f'Invalid {ENV_KEYS["data_repo"]}: expected "owner/repo", got "{self.data_repo}"')


def _load_yaml_section(config_path):
    if not config_path or not os.path.exists(config_path):
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Could not parse {config_path}: {exc}") from exc
    section = data.get("fitness_data") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{config_path}: 'fitness_data' must be a mapping")
    return section


def load_settings(env_file=None, config_path="config.yaml"):
    """
    Build Settings from config.yaml defaults overridden by the environment.

    Args:
        env_file: Optional .env path (python-dotenv searches upwards when None)
        config_path: Optional YAML file with a ``fitness_data`` section

    Returns:
        Settings instance
    """
    load_dotenv(env_file)
    values = {}
    for field_name, value in _load_yaml_section(config_path).items():
        if field_name in ENV_KEYS:
            values[field_name] = value
    for field_name, env_name in ENV_KEYS.items():
        env_value = os.getenv(env_name)
        if env_value not in (None, ""):
            values[field_name] = env_value

    settings = Settings(**{k: v for k, v in values.items()})
    settings.weight_unit = str(settings.weight_unit).strip().lower()
    if settings.weight_unit not in SUPPORTED_UNITS:
        raise ConfigError(f"Unsupported weight unit: {settings.weight_unit}")
    try:
        settings.e1rm_history_window = int(settings.e1rm_history_window)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"E1RM history window must be an integer: {settings.e1rm_history_window}") from exc
    if settings.e1rm_history_window < 1:
        raise ConfigError("E1RM history window must be at least 1")
    if not settings.data_dir:
        settings.data_dir = default_data_dir()
    return settings
