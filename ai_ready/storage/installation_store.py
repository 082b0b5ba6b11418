"""
Persistent plugin enablement store.

The host application's settings file holds a `plugins` section (enabled,
disabled, marketplaces) next to keys this tool does not own. Stores read the
whole document, expose the `plugins` section as a PluginSettings model, and
write the whole document back with everything else preserved.

Every write rotates backups first:

    settings.json.bak.3 -> settings.json.bak.4   (bak.4 dropped beforehand)
    ...
    settings.json.bak   -> settings.json.bak.1
    settings.json       -> copied to settings.json.bak
    new content         -> settings.json (atomic replace)

so at most `max_backups` backups exist beside the live file.
"""

import json
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from ai_ready.lib.atomic import atomic_write_text
from ai_ready.models.settings import MarketplaceEntry, PluginSettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_BACKUPS = 5

_KEY_LIST = TypeAdapter(list[str])


class SettingsDecodeError(ValueError):
    """The settings file exists but cannot be decoded."""


class InstallationStore(ABC):
    """Loads and persists the plugin enablement state of the host application."""

    def __init__(self, path: Path, max_backups: int = DEFAULT_MAX_BACKUPS):
        self.path = path
        self.max_backups = max_backups
        self._document: dict[str, Any] = {}
        self._unparsed_marketplaces: dict[str, Any] = {}
        self._backed_up = False

    # -- format hooks --------------------------------------------------------

    @abstractmethod
    def _decode(self, text: str) -> Any:
        """Parse file content. Raise SettingsDecodeError on malformed input."""

    @abstractmethod
    def _encode(self, document: dict[str, Any]) -> str:
        """Serialize the full settings document."""

    # -- reading -------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> PluginSettings:
        """Load plugin settings, defaulting when the file is absent or corrupt.

        A corrupt file is backed up before defaults are used. Inside a readable
        document each piece of the `plugins` section is validated on its own:
        an invalid list falls back to empty and an invalid marketplace entry is
        skipped, but kept verbatim for the next save.
        """
        self._document = {}
        self._unparsed_marketplaces = {}
        self._backed_up = False
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return PluginSettings()

        try:
            document = self._decode(text)
        except SettingsDecodeError as e:
            logger.warning(f"Malformed settings at {self.path}, backing up and using defaults: {e}")
            self.backup()
            self._backed_up = True
            return PluginSettings()

        if not isinstance(document, dict):
            logger.warning(f"Settings at {self.path} is not a mapping, backing up and using defaults")
            self.backup()
            self._backed_up = True
            return PluginSettings()

        self._document = document
        section = document.get("plugins")
        if not isinstance(section, dict):
            return PluginSettings()

        return PluginSettings(
            enabled=self._load_keys(section, "enabled"),
            disabled=self._load_keys(section, "disabled"),
            marketplaces=self._load_marketplaces(section),
        )

    def _load_keys(self, section: dict[str, Any], name: str) -> list[str]:
        try:
            return _KEY_LIST.validate_python(section.get(name) or [])
        except ValidationError as e:
            logger.warning(f"Invalid plugins.{name} in {self.path}, treating as empty: {e.error_count()} errors")
            return []

    def _load_marketplaces(self, section: dict[str, Any]) -> dict[str, MarketplaceEntry]:
        raw = section.get("marketplaces") or {}
        if not isinstance(raw, dict):
            logger.warning(f"plugins.marketplaces in {self.path} is not a mapping, ignoring it")
            return {}

        marketplaces = {}
        for name, entry in raw.items():
            try:
                marketplaces[name] = MarketplaceEntry.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid marketplace '{name}' in {self.path}: {e.error_count()} errors")
                self._unparsed_marketplaces[name] = entry
        return marketplaces

    # -- writing -------------------------------------------------------------

    def _backup_path(self, index: int) -> Path:
        suffix = ".bak" if index == 0 else f".bak.{index}"
        return self.path.with_name(self.path.name + suffix)

    def rotate_backups(self) -> None:
        """Shift .bak -> .bak.1 -> ... dropping the oldest beyond max_backups."""
        if self.max_backups <= 0:
            return
        oldest = self._backup_path(self.max_backups - 1)
        oldest.unlink(missing_ok=True)
        for i in range(self.max_backups - 2, -1, -1):
            src = self._backup_path(i)
            if src.exists():
                src.rename(self._backup_path(i + 1))

    def backup(self) -> None:
        """Rotate existing backups and copy the live file to .bak."""
        if not self.exists() or self.max_backups <= 0:
            return
        self.rotate_backups()
        shutil.copy2(self.path, self._backup_path(0))

    def backup_paths(self) -> list[Path]:
        return [p for p in (self._backup_path(i) for i in range(self.max_backups + 1)) if p.exists()]

    def save(self, settings: PluginSettings) -> None:
        """Back up the current file, then write the new document.

        Runs synchronously so rotation, copy and write happen as one unit
        with respect to the event loop. A corrupt file already backed up by
        load() is not backed up a second time.
        """
        document = dict(self._document)
        section = document.get("plugins")
        plugins = dict(section) if isinstance(section, dict) else {}
        plugins.update(settings.model_dump(mode="json"))
        for name, entry in self._unparsed_marketplaces.items():
            plugins["marketplaces"].setdefault(name, entry)
        document["plugins"] = plugins
        content = self._encode(document)

        if not self._backed_up:
            self.backup()
        self._backed_up = False
        atomic_write_text(self.path, content)
        self._document = document
        logger.debug(f"Wrote settings to {self.path}")


class JsonInstallationStore(InstallationStore):
    """settings.json, as used by Claude Code."""

    def _decode(self, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise SettingsDecodeError(str(e)) from e

    def _encode(self, document: dict[str, Any]) -> str:
        return json.dumps(document, indent=2) + "\n"


class YamlInstallationStore(InstallationStore):
    """settings.yaml for hosts that keep their settings in YAML."""

    def _decode(self, text: str) -> Any:
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise SettingsDecodeError(str(e)) from e

    def _encode(self, document: dict[str, Any]) -> str:
        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


STORE_TYPES: dict[str, type[InstallationStore]] = {
    "json": JsonInstallationStore,
    "yaml": YamlInstallationStore,
}


def create_installation_store(
    path: Path,
    settings_format: str = "json",
    max_backups: int = DEFAULT_MAX_BACKUPS,
) -> InstallationStore:
    try:
        store_cls = STORE_TYPES[settings_format]
    except KeyError:
        raise ValueError(f"Unknown settings format: {settings_format}") from None
    return store_cls(path, max_backups=max_backups)
