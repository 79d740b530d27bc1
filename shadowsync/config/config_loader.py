"""
Configuration Loader

Resolves the settings for a sync run from a YAML file, environment
variables and explicit overrides (usually the command line), in that order
of increasing precedence, and validates the result.

Author: shadowsync Project
License: MIT
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dotenv import load_dotenv
from pydantic import ValidationError

from .schema import SyncSettings
from ..core.errors import ConfigurationError

ENV_PREFIX = "SHADOWSYNC_"


class ConfigLoader:
    """
    Configuration loader.

    Loads settings from an optional YAML file, merges environment variables
    and overrides, validates the structure and checks that both roots are
    existing directories.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_path: Path to a YAML config file. If None, uses the
                SHADOWSYNC_CONFIG environment variable when set.
        """
        # Load environment variables from .env if present
        load_dotenv()

        self.config_path = config_path or os.getenv(f"{ENV_PREFIX}CONFIG")
        self._settings: Optional[SyncSettings] = None

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> SyncSettings:
        """
        Load and validate settings.

        Args:
            overrides: Values that win over file and environment (None
                values are ignored)

        Returns:
            Validated SyncSettings object

        Raises:
            ConfigurationError: If the file cannot be read, a key is unknown,
                validation fails or a root directory does not exist
        """
        config_data = self._load_yaml()
        config_data = self._merge_env_vars(config_data)
        config_data = self._merge_overrides(config_data, overrides or {})
        self._check_keys(config_data)

        for required in ("source", "target"):
            if not config_data.get(required):
                raise ConfigurationError(f"{required.capitalize()} folder not specified")

        try:
            self._settings = SyncSettings(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        self._check_folders(self._settings)
        return self._settings

    def _load_yaml(self) -> Dict[str, Any]:
        """
        Load YAML configuration file.

        Returns:
            Dictionary with configuration data (empty without a file)
        """
        if not self.config_path:
            return {}

        config_file = Path(self.config_path)
        if not config_file.is_file():
            raise ConfigurationError(f"Config file not found: {config_file}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML config: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {config_file}")
        return data

    def _merge_env_vars(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge environment variables into configuration.

        Environment variables override config file values.
        Naming convention: SHADOWSYNC_<FIELD> (e.g., SHADOWSYNC_DRY_RUN)

        Args:
            config_data: Configuration dictionary from file

        Returns:
            Merged configuration dictionary
        """
        for name in SyncSettings.__fields__:
            value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if value is not None and value != "":
                config_data[name] = value
        return config_data

    def _merge_overrides(self, config_data: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in overrides.items():
            if value is not None:
                config_data[key] = value
        return config_data

    def _check_keys(self, config_data: Dict[str, Any]) -> None:
        unknown = sorted(set(config_data) - set(SyncSettings.__fields__))
        if unknown:
            raise ConfigurationError(f"Unknown configuration key(s): {', '.join(unknown)}")

    def _check_folders(self, settings: SyncSettings) -> None:
        """Ensure both roots exist before any scan begins."""
        if not Path(settings.source).is_dir():
            raise ConfigurationError(f"Source folder not found: {settings.source}")
        if not Path(settings.target).is_dir():
            raise ConfigurationError(f"Target folder not found: {settings.target}")

    def save(self, settings: SyncSettings, path: Optional[str] = None) -> None:
        """
        Save settings to a YAML file.

        Args:
            settings: SyncSettings object to save
            path: Path to save to (uses the loader's path if None)
        """
        save_path = Path(path or self.config_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(settings.dict(), f, default_flow_style=False, sort_keys=False)

    @property
    def settings(self) -> Optional[SyncSettings]:
        """Get the most recently loaded settings."""
        return self._settings


def load_settings(config_path: Optional[str] = None, **overrides) -> SyncSettings:
    """
    Convenience function to load settings.

    Args:
        config_path: Optional path to config file
        **overrides: Values that take precedence over file and environment

    Returns:
        Loaded and validated SyncSettings object
    """
    loader = ConfigLoader(config_path)
    return loader.load(overrides)
