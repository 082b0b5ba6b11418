"""
Settings reconciliation.

Merges discovered marketplaces into the host's plugin settings without
overriding user choices:

- Marketplace entries are owned by discovery and replaced wholesale when
  anything about them changed.
- A plugin key in `disabled` is never touched.
- A plugin key not yet enabled is enabled and reported as added; an already
  enabled key is reported as updated when its marketplace metadata changed.
- Plugins that are no longer discovered stay in settings as they are.
"""

import logging
from typing import Iterable, Optional

from ai_ready.models.plugin import MarketplaceDeclaration, Provider
from ai_ready.models.settings import (
    PLUGIN_DISABLED,
    PLUGIN_ENABLED,
    PLUGIN_NOT_INSTALLED,
    ChangeSummary,
    MarketplaceEntry,
    MarketplaceSource,
    PluginMetadata,
    PluginSettings,
    PluginState,
    plugin_key,
)
from ai_ready.storage.installation_store import InstallationStore

logger = logging.getLogger(__name__)


def build_marketplace_entry(provider: Provider, declaration: MarketplaceDeclaration) -> MarketplaceEntry:
    return MarketplaceEntry(
        source=MarketplaceSource(path=provider.source_path),
        plugins={
            plugin.name: PluginMetadata(
                version=plugin.version or "unknown",
                source=plugin.source_string,
            )
            for plugin in declaration.plugins
        },
    )


def should_replace_marketplace(existing: Optional[MarketplaceEntry], candidate: MarketplaceEntry) -> bool:
    """True if the stored entry differs from the discovered one."""
    if existing is None:
        return True
    if existing.source.path != candidate.source.path:
        return True
    if len(existing.plugins) != len(candidate.plugins):
        return True
    for name, meta in candidate.plugins.items():
        current = existing.plugins.get(name)
        if current is None:
            return True
        if current.version != meta.version or current.source != meta.source:
            return True
    return False


def plugin_refreshed(previous: Optional[MarketplaceEntry], candidate: MarketplaceEntry, name: str) -> bool:
    """True if discovery changed what settings record for one plugin."""
    if previous is None or previous.source.path != candidate.source.path:
        return True
    return previous.plugins.get(name) != candidate.plugins.get(name)


def iter_declarations(providers: Iterable[Provider]) -> Iterable[tuple[Provider, MarketplaceDeclaration]]:
    for provider in providers:
        for declaration in provider.declarations:
            yield provider, declaration


class SettingsReconciler:
    """Merges discovered providers into an InstallationStore."""

    def __init__(self, store: InstallationStore):
        self.store = store

    def merge(self, settings: PluginSettings, providers: Iterable[Provider]) -> tuple[ChangeSummary, bool]:
        """Apply discovery to `settings` in place.

        Returns the change summary and whether any marketplace entry was replaced.
        """
        changes = ChangeSummary()
        marketplaces_dirty = False
        enabled = set(settings.enabled)
        disabled = set(settings.disabled)

        for provider, declaration in iter_declarations(providers):
            marketplace_name = declaration.name
            candidate = build_marketplace_entry(provider, declaration)
            previous = settings.marketplaces.get(marketplace_name)

            if should_replace_marketplace(previous, candidate):
                settings.marketplaces[marketplace_name] = candidate
                marketplaces_dirty = True
                logger.debug(f"Marketplace '{marketplace_name}' refreshed from {provider.source_id}")

            for plugin in declaration.plugins:
                key = plugin_key(plugin.name, marketplace_name)
                if key in disabled:
                    continue
                if key not in enabled:
                    settings.enabled.append(key)
                    enabled.add(key)
                    changes.added.append(plugin.name)
                elif plugin_refreshed(previous, candidate, plugin.name):
                    changes.updated.append(plugin.name)

        return changes, marketplaces_dirty

    def reconcile(self, providers: Iterable[Provider]) -> ChangeSummary:
        """Load settings, merge discovery, and persist if anything changed.

        The file is always written on first run so it exists afterwards.
        """
        existed = self.store.exists()
        settings = self.store.load()
        changes, marketplaces_dirty = self.merge(settings, providers)

        if changes.changed or marketplaces_dirty or not existed:
            self.store.save(settings)
            logger.info(
                f"Updated settings {self.store.path}: "
                f"{len(changes.added)} added, {len(changes.updated)} updated"
            )
        else:
            logger.debug("Settings unchanged")
        return changes


def get_plugin_state(plugin_name: str, marketplace_name: str, settings: PluginSettings) -> str:
    key = plugin_key(plugin_name, marketplace_name)
    if key in settings.enabled:
        return PLUGIN_ENABLED
    if key in settings.disabled:
        return PLUGIN_DISABLED
    return PLUGIN_NOT_INSTALLED


def get_plugin_states(providers: Iterable[Provider], settings: PluginSettings) -> list[PluginState]:
    """State of every discovered plugin against the current settings."""
    states: list[PluginState] = []
    for _, declaration in iter_declarations(providers):
        for plugin in declaration.plugins:
            states.append(PluginState(
                name=plugin.name,
                status=get_plugin_state(plugin.name, declaration.name, settings),
                source=plugin.source_string,
                version=plugin.version or "unknown",
                description=plugin.description or "",
                marketplace=declaration.name,
            ))
    return states
