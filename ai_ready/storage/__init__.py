"""
Persistent stores for host plugin settings.
"""

from ai_ready.storage.installation_store import (
    InstallationStore,
    JsonInstallationStore,
    YamlInstallationStore,
    create_installation_store,
)

__all__ = [
    "InstallationStore",
    "JsonInstallationStore",
    "YamlInstallationStore",
    "create_installation_store",
]
