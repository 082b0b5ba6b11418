"""
Provider discovery.

Finds declarations in two kinds of source directory:

1. npm packages: every top-level entry of {project}/node_modules plus the
   packages one level under each @scope directory.
2. Remote repositories: every configured repo that is currently cloned.

Each source directory is handed to the ManifestParser. Sources are scanned
concurrently; a failure in one is logged and skipped, never fatal to the batch.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from ai_ready.core.manifest import ManifestParser
from ai_ready.core.remote_repos import RemoteRepositoryManager
from ai_ready.models.cache import Scope
from ai_ready.models.plugin import Provider
from ai_ready.models.sources import RemoteRepoEntry

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"


def _read_package_json(package_dir: Path) -> Optional[dict[str, Any]]:
    try:
        data = json.loads((package_dir / "package.json").read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read package.json for {package_dir}: {e}")
        return None
    return data if isinstance(data, dict) else None


def list_package_dirs(node_modules: Path) -> list[tuple[str, Path]]:
    """List (package name, directory) pairs under node_modules.

    Hidden entries (.bin, .package-lock.json, ...) are skipped. Scoped
    packages are expanded one level: @scope/name.
    """
    if not node_modules.is_dir():
        return []

    packages: list[tuple[str, Path]] = []
    for entry in sorted(node_modules.iterdir()):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if entry.name.startswith("@"):
            for scoped in sorted(entry.iterdir()):
                if scoped.name.startswith(".") or not scoped.is_dir():
                    continue
                packages.append((f"{entry.name}/{scoped.name}", scoped))
        else:
            packages.append((entry.name, entry))
    return packages


class ProviderScanner:
    """Scans npm packages and cloned repositories for declarations."""

    def __init__(
        self,
        repo_manager: RemoteRepositoryManager,
        parser: Optional[ManifestParser] = None,
    ):
        self.repo_manager = repo_manager
        self.parser = parser or ManifestParser()

    # -- npm -----------------------------------------------------------------

    def _scan_package(self, package_name: str, package_dir: Path) -> Optional[Provider]:
        declarations = self.parser.parse_declarations(package_dir)
        integrations = self.parser.parse_integrations(package_dir)
        if not declarations and not integrations:
            return None

        package_json = _read_package_json(package_dir)
        version = UNKNOWN_VERSION
        if package_json:
            package_name = package_json.get("name") or package_name
            version = package_json.get("version") or UNKNOWN_VERSION

        return Provider(
            source_kind="npm",
            source_id=package_name,
            source_path=str(package_dir.resolve()),
            version=str(version),
            declarations=declarations,
            integrations=integrations,
        )

    async def scan_npm(self, base_dir: Path) -> list[Provider]:
        """Scan {base_dir}/node_modules for packages with declarations."""
        node_modules = base_dir / "node_modules"
        packages = await asyncio.to_thread(list_package_dirs, node_modules)
        if not packages:
            logger.debug(f"No packages found under {node_modules}")
            return []

        results = await asyncio.gather(
            *(asyncio.to_thread(self._scan_package, name, path) for name, path in packages),
            return_exceptions=True,
        )
        providers = self._collect(results, (str(path) for _, path in packages))
        logger.info(f"Scanned {len(packages)} npm packages, {len(providers)} providers")
        return providers

    # -- remote --------------------------------------------------------------

    async def _scan_repo(self, repo: RemoteRepoEntry) -> Optional[Provider]:
        commit_sha = await self.repo_manager.current_commit(repo)
        if not commit_sha:
            logger.warning(f"Skipping {repo.name} ({repo.id}): could not resolve HEAD")
            return None

        repo_dir = self.repo_manager.repo_path(repo.id)
        declarations = await asyncio.to_thread(self.parser.parse_declarations, repo_dir)
        integrations = await asyncio.to_thread(self.parser.parse_integrations, repo_dir)
        if not declarations and not integrations:
            return None

        return Provider(
            source_kind="remote",
            source_id=repo.id,
            source_path=str(repo_dir.resolve()),
            commit_sha=commit_sha,
            declarations=declarations,
            integrations=integrations,
        )

    async def scan_remote(self, repos: Iterable[RemoteRepoEntry]) -> list[Provider]:
        """Scan every configured repository that is currently cloned."""
        cloned = [repo for repo in repos if self.repo_manager.is_cloned(repo)]
        if not cloned:
            return []

        results = await asyncio.gather(
            *(self._scan_repo(repo) for repo in cloned),
            return_exceptions=True,
        )
        providers = self._collect(results, (repo.name for repo in cloned))
        logger.info(f"Scanned {len(cloned)} cloned repositories, {len(providers)} providers")
        return providers

    # -- combined ------------------------------------------------------------

    async def scan(
        self,
        base_dir: Path,
        repos: Iterable[RemoteRepoEntry],
        scope: Scope = "all",
    ) -> tuple[list[Provider], list[Provider]]:
        """Scan the requested scope. Returns (npm providers, remote providers)."""
        npm_task = self.scan_npm(base_dir) if scope in ("npm", "all") else _empty()
        remote_task = self.scan_remote(repos) if scope in ("remote", "all") else _empty()
        npm_providers, remote_providers = await asyncio.gather(npm_task, remote_task)
        return npm_providers, remote_providers

    @staticmethod
    def _collect(results: list[Any], labels: Iterable[str]) -> list[Provider]:
        providers: list[Provider] = []
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to scan {label}: {result}")
            elif result is not None:
                providers.append(result)
        return providers


async def _empty() -> list[Provider]:
    return []
