"""Configuration loader for systest.

This module provides the ConfigLoader class for loading systest.yaml and
merging it over the built-in defaults:
    systest.yaml > built-in defaults
"""

from pathlib import Path
from typing import Any

import yaml

from systest.errors import ConfigurationError

from .models import SystestConfig

DEFAULT_CONFIG_FILENAME = "systest.yaml"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values in override take precedence. Nested dicts are merged recursively.
    Lists are replaced entirely (not appended).

    Args:
        base: Base dictionary
        override: Override dictionary (values take precedence)

    Returns:
        Merged dictionary

    """
    result = base.copy()

    for key, value in override.items():
        if value is None:
            continue

        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


class ConfigLoader:
    """Load and merge systest configuration.

    Example:
        loader = ConfigLoader(Path("."))
        config = loader.load()
        print(config.base.timeout_minutes)

    """

    def __init__(self, base_path: str | Path | None = None) -> None:
        """Initialize the ConfigLoader.

        Args:
            base_path: Directory holding systest.yaml. Defaults to current working directory.

        """
        if base_path is None:
            self.base_path = Path.cwd()
        else:
            self.base_path = Path(base_path)

    def _load_yaml_optional(self, path: Path) -> dict[str, Any] | None:
        """Load a YAML mapping if the file exists.

        Args:
            path: Path to YAML file

        Returns:
            Parsed YAML content as dict, or None if file doesn't exist

        Raises:
            ConfigurationError: If file exists but cannot be parsed

        """
        if not path.exists():
            return None

        try:
            with open(path) as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        except PermissionError as e:
            raise ConfigurationError(f"Permission denied reading: {path}") from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigurationError(f"Expected a mapping at the top of {path}")
        return content

    def load(self, config_file: str | Path | None = None) -> SystestConfig:
        """Load systest.yaml (optional) and merge it over the defaults.

        Args:
            config_file: Explicit config file. Relative paths resolve against
                base_path. When given, the file must exist.

        Returns:
            SystestConfig with merged configuration

        Raises:
            ConfigurationError: If the file is missing (when explicit) or invalid

        """
        if config_file is not None:
            path = Path(config_file)
            if not path.is_absolute():
                path = self.base_path / path
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")
        else:
            path = self.base_path / DEFAULT_CONFIG_FILENAME

        override = self._load_yaml_optional(path) or {}
        defaults = SystestConfig().model_dump()
        merged = _deep_merge(defaults, override)

        try:
            return SystestConfig(**merged)
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e
