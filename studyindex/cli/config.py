"""Configuration management for the CLI."""

import os
from pathlib import Path
from typing import Any

import yaml

from studyindex.core.config import EngineConfig

TRUE_VALUES = {"1", "true", "yes", "on"}


class Config:
    """Configuration files of the CLI application."""

    @staticmethod
    def from_file(path: Path) -> dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ValueError(f"Error reading config file: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return data

    @staticmethod
    def get_config_paths() -> list[Path]:
        """Get the default configuration file paths to check."""
        paths = []

        # User config
        xdg_config_home = Path(
            os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        )
        paths.append(xdg_config_home / "studyindex" / "config.yaml")

        # Project config
        paths.append(Path(".studyindex.yaml"))
        paths.append(Path("studyindex.yaml"))

        return paths

    @staticmethod
    def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
        """Merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = _deep_merge(result, config)
        return result


def get_config_paths() -> list[Path]:
    """Get configuration paths in precedence order."""
    return Config.get_config_paths()


def load_config(extra: Path | None = None) -> dict[str, Any]:
    """Load configuration from files and environment variables.

    Args:
        extra: Explicit config file, applied after the default locations

    Raises:
        ValueError: If the explicit config file is unreadable
    """
    config: dict[str, Any] = {}

    # Later files win for conflicting keys
    for path in get_config_paths():
        if path.exists():
            try:
                config = Config.merge_configs(config, Config.from_file(path))
            except ValueError:
                continue

    if extra is not None:
        config = Config.merge_configs(config, Config.from_file(extra))

    env_overrides: dict[str, Any] = {}
    if source := os.environ.get("STUDYINDEX_SOURCE"):
        env_overrides["source"] = source
    if prefetch := os.environ.get("STUDYINDEX_PREFETCH"):
        env_overrides["engine"] = {"prefetch": prefetch.strip().lower() in TRUE_VALUES}

    return Config.merge_configs(config, env_overrides)


def build_engine_config(config: dict[str, Any]) -> EngineConfig:
    """Engine configuration from the ``engine`` section.

    Raises:
        ValueError: If the section is not a mapping or has invalid values
    """
    section = config.get("engine") or {}
    if not isinstance(section, dict):
        raise ValueError("The 'engine' config section must be a mapping")
    return EngineConfig.from_dict(section)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
