"""
Discovery pipeline for one invocation.

    RemoteRepositoryManager  (clones on disk)
            |
    ProviderScanner          (npm + cloned repos -> Providers)
            |
    FreshnessCache           (skips the scan when nothing changed)
            |
    SettingsReconciler       (Providers -> host plugin settings)

Every component is built from the Settings instance passed in.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ai_ready.config import Settings
from ai_ready.core.cache import FreshnessCache
from ai_ready.core.manifest import ManifestParser
from ai_ready.core.reconciler import SettingsReconciler, get_plugin_states
from ai_ready.core.remote_repos import RemoteRepositoryManager
from ai_ready.core.scanner import ProviderScanner
from ai_ready.core.source_manager import SourceManager
from ai_ready.core.sources import SourcesStore
from ai_ready.models.cache import Scope
from ai_ready.models.plugin import Provider
from ai_ready.models.settings import ChangeSummary, PluginState
from ai_ready.storage.installation_store import InstallationStore, create_installation_store

logger = logging.getLogger(__name__)


def apply_source_priority(providers: list[Provider], priority: list[str]) -> list[Provider]:
    """Order providers by source priority and drop shadowed marketplaces.

    When two providers declare the same marketplace name, the one from the
    higher-priority source kind keeps it.
    """
    rank = {kind: i for i, kind in enumerate(priority)}
    ordered = sorted(providers, key=lambda p: rank.get(p.source_kind, len(rank)))

    seen: dict[str, Provider] = {}
    result: list[Provider] = []
    for provider in ordered:
        kept = []
        for declaration in provider.declarations:
            owner = seen.get(declaration.name)
            if owner is not None:
                logger.warning(
                    f"Marketplace '{declaration.name}' from {provider.source_id} "
                    f"is shadowed by {owner.source_id}"
                )
                continue
            seen[declaration.name] = provider
            kept.append(declaration)
        if len(kept) != len(provider.declarations):
            provider = provider.model_copy(update={"declarations": kept})
        result.append(provider)
    return result


@dataclass
class SyncResult:
    changes: ChangeSummary
    providers: list[Provider] = field(default_factory=list)

    @property
    def plugin_count(self) -> int:
        return sum(len(d.plugins) for p in self.providers for d in p.declarations)


class DiscoveryPipeline:
    def __init__(
        self,
        settings: Settings,
        parser: Optional[ManifestParser] = None,
        store: Optional[InstallationStore] = None,
    ):
        self.settings = settings
        self.sources = SourcesStore(settings.sources_path)
        self.repo_manager = RemoteRepositoryManager(
            settings.repos_dir,
            git_timeout=settings.git_timeout,
            min_disk_space_mb=settings.min_disk_space_mb,
        )
        self.scanner = ProviderScanner(self.repo_manager, parser=parser)
        self.cache = FreshnessCache(
            settings.cache_path,
            settings.project_dir,
            self.scanner,
            self.repo_manager,
        )
        self.store = store or create_installation_store(
            settings.settings_path,
            settings.settings_format,
            max_backups=settings.max_backups,
        )
        self.reconciler = SettingsReconciler(self.store)
        self.source_manager = SourceManager(self.sources, self.repo_manager, self.cache)

    async def load_providers(self, scope: Scope = "all") -> list[Provider]:
        config = self.sources.load()
        providers = await self.cache.load_providers(config.repos, scope)
        return apply_source_priority(providers, list(config.source_priority))

    async def sync(self) -> SyncResult:
        """Discover plugins and merge them into the host settings."""
        providers = await self.load_providers("all")
        changes = self.reconciler.reconcile(providers)
        return SyncResult(changes=changes, providers=providers)

    async def plugin_states(self) -> list[PluginState]:
        providers = await self.load_providers("all")
        return get_plugin_states(providers, self.store.load())
