"""
Pydantic models for ai-ready.
"""

from ai_ready.models.cache import CacheFingerprint, CacheRecord, NpmFingerprint
from ai_ready.models.plugin import (
    Integration,
    ManifestParseResult,
    MarketplaceDeclaration,
    MarketplaceOwner,
    PluginRef,
    PluginSourceRef,
    Provider,
)
from ai_ready.models.settings import (
    ChangeSummary,
    MarketplaceEntry,
    MarketplaceSource,
    PluginMetadata,
    PluginSettings,
    PluginState,
)
from ai_ready.models.sources import RemoteRepoEntry, SourcesConfig

__all__ = [
    # Cache
    "CacheFingerprint",
    "CacheRecord",
    "NpmFingerprint",
    # Plugins
    "Integration",
    "ManifestParseResult",
    "MarketplaceDeclaration",
    "MarketplaceOwner",
    "PluginRef",
    "PluginSourceRef",
    "Provider",
    # Settings
    "ChangeSummary",
    "MarketplaceEntry",
    "MarketplaceSource",
    "PluginMetadata",
    "PluginSettings",
    "PluginState",
    # Sources
    "RemoteRepoEntry",
    "SourcesConfig",
]
