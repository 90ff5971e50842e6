"""Persistent settings: a YAML key-value document and the ImageJ configuration stored in it."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ijlauncher.models.imagej_configuration import ImageJConfiguration

logger = logging.getLogger(__name__)

CONFIGURATION_KEY = "imagej-configuration"


def default_settings_path() -> Path:
    """``$XDG_CONFIG_HOME/ijlauncher/settings.yaml`` (``~/.config`` when unset)."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "ijlauncher" / "settings.yaml"


class YamlKeyValueStore:
    """Key-value store persisted as a single YAML mapping."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Args:
            path: Settings file (default: :func:`default_settings_path`)
        """
        self.path = Path(path) if path is not None else default_settings_path()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as file:
                data = yaml.safe_load(file)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read settings %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings %s: not a mapping", self.path)
            return {}
        return data

    def _dump(self, data: Dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Save to temporary file first, then rename (atomic operation)
        temp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            with open(temp_path, 'w', encoding='utf-8') as file:
                yaml.safe_dump(data, file, default_flow_style=False,
                               sort_keys=False, indent=2, allow_unicode=True)
            os.replace(temp_path, self.path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any):
        """
        Store ``value`` under ``key``.

        Raises:
            OSError: If the settings file cannot be written
        """
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        del data[key]
        self._dump(data)
        return True

    def keys(self):
        return list(self._load().keys())


class ConfigurationService:
    """Loads and saves the :class:`ImageJConfiguration` of the application."""

    def __init__(self, store: Optional[YamlKeyValueStore] = None):
        self.store = store if store is not None else YamlKeyValueStore()

    def load(self) -> ImageJConfiguration:
        """
        Read the stored configuration.

        Missing or malformed entries fall back to :meth:`ImageJConfiguration.default`.
        """
        entry = self.store.get(CONFIGURATION_KEY)
        if entry is None:
            logger.info("No ImageJ configuration stored, using defaults")
            return ImageJConfiguration.default()

        try:
            return ImageJConfiguration.from_store(entry)
        except ValueError as e:
            logger.warning("Malformed ImageJ configuration (%s), using defaults", e)
            return ImageJConfiguration.default()

    def save(self, configuration: ImageJConfiguration) -> bool:
        """
        Persist ``configuration``.

        Returns:
            True if saved successfully, False otherwise
        """
        try:
            self.store.set(CONFIGURATION_KEY, configuration.to_store())
        except OSError as e:
            logger.error("Error saving ImageJ configuration to %s: %s", self.store.path, e)
            return False
        logger.info("ImageJ configuration saved (path=%s, memory=%dMB, stack=%dMB)",
                    configuration.path, configuration.memory, configuration.stack_memory)
        return True
