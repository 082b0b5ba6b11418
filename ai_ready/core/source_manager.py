"""
Source management: add, remove, update, repair and list git sources.

Ties the sources config, the repository manager and the scan cache together.
Any operation that changes what is on disk invalidates the scan cache.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ai_ready.core.cache import FreshnessCache
from ai_ready.core.remote_repos import RemoteRepositoryManager, RepoOperationResult
from ai_ready.core.sources import SourcesStore, new_repo_entry
from ai_ready.lib.errors import SourceExistsError, SourceNotFoundError
from ai_ready.models.sources import RemoteRepoEntry, SourcesConfig

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SourceOutcome:
    """Result of one lifecycle operation on one repository."""

    repo: RemoteRepoEntry
    result: Optional[RepoOperationResult] = None
    was_clone: bool = False
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.result is None or self.result.success


@dataclass
class SourceStatus:
    repo: RemoteRepoEntry
    cloned: bool


class SourceManager:
    def __init__(
        self,
        store: SourcesStore,
        repo_manager: RemoteRepositoryManager,
        cache: FreshnessCache,
    ):
        self.store = store
        self.repo_manager = repo_manager
        self.cache = cache

    def _require(self, config: SourcesConfig, identifier: str) -> RemoteRepoEntry:
        repo = self.store.find(config, identifier)
        if repo is None:
            raise SourceNotFoundError(identifier)
        return repo

    def list_sources(self) -> list[SourceStatus]:
        config = self.store.load()
        return [SourceStatus(repo=r, cloned=self.repo_manager.is_cloned(r)) for r in config.repos]

    async def add(self, url: str, clone: bool = True) -> SourceOutcome:
        """Configure a repository and (by default) clone it.

        A failed clone leaves the entry configured; `update` retries it.
        """
        config = self.store.load()
        existing = self.store.find(config, url)
        if existing:
            raise SourceExistsError(url, existing.name)

        repo = new_repo_entry(url)
        config.repos.append(repo)
        self.store.save(config)
        logger.info(f"Repository added: {repo.name} ({repo.id})")

        if not clone:
            return SourceOutcome(repo=repo)

        started = time.monotonic()
        result = await self.repo_manager.clone(repo)
        if result.success:
            repo.cloned_at = _now()
            repo.last_reviewed_commit = result.commit_sha
            self.store.save(config)
            self.cache.invalidate()
        else:
            logger.warning(f"Failed to clone {repo.name}: {result.error}")

        return SourceOutcome(
            repo=repo,
            result=result,
            was_clone=True,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def remove(self, identifier: str, keep_files: bool = False) -> SourceOutcome:
        """Drop a repository from config and, unless kept, delete its clone."""
        config = self.store.load()
        repo = self._require(config, identifier)

        config.repos = [r for r in config.repos if r.id != repo.id]
        self.store.save(config)
        logger.info(f"Repository removed from config: {repo.name}")

        result = None
        if not keep_files:
            result = await self.repo_manager.remove(repo)
            if not result.success:
                logger.warning(f"Failed to delete local files for {repo.name}: {result.error}")

        self.cache.invalidate()
        return SourceOutcome(repo=repo, result=result)

    async def _update_one(self, repo: RemoteRepoEntry, was_clone: bool) -> SourceOutcome:
        started = time.monotonic()

        if was_clone:
            result = await self.repo_manager.clone(repo)
            if result.success:
                repo.cloned_at = _now()
                repo.last_reviewed_commit = result.commit_sha
        else:
            result = await self.repo_manager.update(repo)
            if result.success:
                repo.last_updated = _now()
                if result.changed:
                    repo.last_reviewed_commit = result.commit_sha

        return SourceOutcome(
            repo=repo,
            result=result,
            was_clone=was_clone,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def update(self, identifier: Optional[str] = None) -> list[SourceOutcome]:
        """Clone missing repos and pull cloned ones, concurrently.

        One repository raising does not affect the others: its outcome is
        reported as failed and the sources config is still saved.
        """
        config = self.store.load()
        repos = [self._require(config, identifier)] if identifier else list(config.repos)
        if not repos:
            return []

        clones = [not self.repo_manager.is_cloned(repo) for repo in repos]
        results = await asyncio.gather(
            *(self._update_one(repo, was_clone) for repo, was_clone in zip(repos, clones)),
            return_exceptions=True,
        )

        outcomes: list[SourceOutcome] = []
        for repo, was_clone, result in zip(repos, clones, results):
            if isinstance(result, Exception):
                logger.warning(f"Update of {repo.name} raised: {result}")
                result = SourceOutcome(
                    repo=repo,
                    result=RepoOperationResult.failure(str(result)),
                    was_clone=was_clone,
                )
            elif isinstance(result, BaseException):
                raise result
            outcomes.append(result)
        self.store.save(config)

        succeeded = sum(1 for o in outcomes if o.success)
        logger.info(f"Updated repositories: {succeeded} succeeded, {len(outcomes) - succeeded} failed")
        if succeeded:
            self.cache.invalidate()
        return outcomes

    async def repair(self, identifier: str) -> SourceOutcome:
        """Delete and re-clone a repository."""
        config = self.store.load()
        repo = self._require(config, identifier)

        started = time.monotonic()
        result = await self.repo_manager.repair(repo)
        if result.success:
            now = _now()
            repo.cloned_at = now
            repo.last_updated = now
            repo.last_reviewed_commit = result.commit_sha
            self.store.save(config)
            self.cache.invalidate()
        else:
            logger.warning(f"Repair of {repo.name} failed: {result.error}")

        return SourceOutcome(
            repo=repo,
            result=result,
            was_clone=True,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
