"""
Core discovery, caching and reconciliation logic.
"""

from ai_ready.core.cache import FreshnessCache
from ai_ready.core.pipeline import DiscoveryPipeline
from ai_ready.core.reconciler import SettingsReconciler
from ai_ready.core.remote_repos import RemoteRepositoryManager
from ai_ready.core.scanner import ProviderScanner
from ai_ready.core.source_manager import SourceManager

__all__ = [
    "DiscoveryPipeline",
    "FreshnessCache",
    "ProviderScanner",
    "RemoteRepositoryManager",
    "SettingsReconciler",
    "SourceManager",
]
