"""Configuration loader for YAML files."""

from pathlib import Path
from typing import Any

import yaml

from phpapidoc.core.exceptions.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"


class ConfigLoader:
    """Load the sectioned YAML configuration read by the settings classes."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the config loader.

        Args:
            config_path: Path to configuration file.
        """
        self.config_path = config_path
        self._config: dict[str, Any] = {}

    def load(self, path: Path | None = None) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Args:
            path: Path to YAML file. Uses config_path if not provided.

        Returns:
            Loaded configuration dictionary.

        Raises:
            ConfigurationError: If the file is missing, is not valid YAML, or
                has a root or section that is not a mapping.
        """
        load_path = path or self.config_path
        if not load_path:
            return {}

        try:
            with open(load_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Configuration file not found: {load_path}",
                config_key=str(load_path),
                details={"path": str(load_path)},
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {load_path}",
                config_key=str(load_path),
                details={"error": str(e)},
            ) from e

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {load_path}",
                config_key=str(load_path),
            )
        for section, values in config.items():
            if values is not None and not isinstance(values, dict):
                raise ConfigurationError(
                    f"Configuration section '{section}' must be a mapping: {load_path}",
                    config_key=str(section),
                )

        self._config = config
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key (e.g. ``parser.max_workers``).

        Args:
            key: Configuration key.
            default: Value returned when the key is absent.

        Returns:
            Configuration value or default.
        """
        value: Any = self._config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    @classmethod
    def default(cls) -> "ConfigLoader":
        """Return a loader for the bundled default configuration.

        The loader is empty when the default file is not present, for example
        when the package is installed without the repository's config
        directory.
        """
        loader = cls(DEFAULT_CONFIG_PATH)
        if DEFAULT_CONFIG_PATH.exists():
            loader.load()
        return loader
