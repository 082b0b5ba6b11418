"""
Freshness cache for discovered providers.

A rescan is skipped when the cheap signals it depends on are unchanged:

- npm:    package.json and package-lock.json mtimes (ms; a missing lock file
          is recorded as 0)
- remote: the set of currently-cloned repo ids and each one's HEAD commit

Whenever any requested portion is stale, everything is rescanned and the
whole record (fingerprint and both provider lists) is rewritten together.
"""

import asyncio
import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from ai_ready.core.remote_repos import RemoteRepositoryManager
from ai_ready.core.scanner import ProviderScanner
from ai_ready.lib.atomic import atomic_write_json
from ai_ready.models.cache import (
    MISSING_MTIME,
    CacheFingerprint,
    CacheRecord,
    NpmFingerprint,
    Scope,
)
from ai_ready.models.plugin import Provider
from ai_ready.models.sources import RemoteRepoEntry

logger = logging.getLogger(__name__)


def file_mtime_ms(path: Path) -> int:
    """Integer mtime in milliseconds, or MISSING_MTIME if the file is absent."""
    try:
        return math.floor(path.stat().st_mtime_ns / 1_000_000)
    except FileNotFoundError:
        return MISSING_MTIME


def npm_fingerprint(base_dir: Path) -> NpmFingerprint:
    return NpmFingerprint(
        package_json_mtime=file_mtime_ms(base_dir / "package.json"),
        package_lock_mtime=file_mtime_ms(base_dir / "package-lock.json"),
    )


class FreshnessCache:
    """Wraps a ProviderScanner behind a fingerprint check."""

    def __init__(
        self,
        cache_path: Path,
        base_dir: Path,
        scanner: ProviderScanner,
        repo_manager: RemoteRepositoryManager,
    ):
        self.cache_path = cache_path
        self.base_dir = base_dir
        self.scanner = scanner
        self.repo_manager = repo_manager

    # -- storage -------------------------------------------------------------

    def read(self) -> Optional[CacheRecord]:
        """Read the cache file. Missing or malformed files read as None."""
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring malformed cache file {self.cache_path}: {e}")
            return None

        try:
            return CacheRecord.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid cache file {self.cache_path}: {e.error_count()} errors")
            return None

    def write(self, record: CacheRecord) -> None:
        atomic_write_json(self.cache_path, record.model_dump(by_alias=True, exclude_none=True))

    def invalidate(self) -> None:
        """Delete the cache file. Already-absent is fine."""
        try:
            self.cache_path.unlink()
            logger.debug(f"Invalidated cache {self.cache_path}")
        except FileNotFoundError:
            pass

    # -- fingerprint ---------------------------------------------------------

    async def remote_fingerprint(self, repos: Iterable[RemoteRepoEntry]) -> dict[str, str]:
        """HEAD commit of every currently-cloned repo whose HEAD resolves."""
        cloned = [repo for repo in repos if self.repo_manager.is_cloned(repo)]
        commits = await asyncio.gather(*(self.repo_manager.current_commit(r) for r in cloned))
        return {repo.id: sha for repo, sha in zip(cloned, commits) if sha}

    async def current_fingerprint(self, repos: Iterable[RemoteRepoEntry]) -> CacheFingerprint:
        return CacheFingerprint(
            npm=npm_fingerprint(self.base_dir),
            remote=await self.remote_fingerprint(repos),
        )

    @staticmethod
    def npm_portion_valid(record: CacheRecord, current: CacheFingerprint) -> bool:
        return (
            record.package_json_mtime == current.npm.package_json_mtime
            and record.package_lock_mtime == current.npm.package_lock_mtime
        )

    @staticmethod
    def remote_portion_valid(record: CacheRecord, current: CacheFingerprint) -> bool:
        # Added or removed clones change the key set
        if set(record.remote_commits) != set(current.remote):
            return False
        for repo_id, sha in record.remote_commits.items():
            if current.remote[repo_id] != sha:
                return False
        # Every cached provider must still describe a live HEAD
        for provider in record.remote_providers:
            if current.remote.get(provider.source_id) != provider.commit_sha:
                return False
        return True

    def is_valid(
        self,
        record: Optional[CacheRecord],
        current: CacheFingerprint,
        scope: Scope = "all",
    ) -> bool:
        if record is None:
            return False
        if scope in ("npm", "all") and not self.npm_portion_valid(record, current):
            return False
        if scope in ("remote", "all") and not self.remote_portion_valid(record, current):
            return False
        return True

    # -- loading -------------------------------------------------------------

    async def load_providers(
        self,
        repos: Iterable[RemoteRepoEntry],
        scope: Scope = "all",
    ) -> list[Provider]:
        """Return providers for `scope`, rescanning only if the cache is stale."""
        repos = list(repos)
        record = await asyncio.to_thread(self.read)
        current = await self.current_fingerprint(repos)

        if self.is_valid(record, current, scope):
            logger.debug(f"Cache hit for scope '{scope}'")
            return record.providers_for(scope)

        logger.info(f"Cache miss for scope '{scope}', rescanning")
        npm_providers, remote_providers = await self.scanner.scan(self.base_dir, repos, "all")

        # Fingerprint taken after the scan so it reflects what was read
        current = await self.current_fingerprint(repos)
        record = CacheRecord(
            scanned_at=datetime.now(timezone.utc).isoformat(),
            package_json_mtime=current.npm.package_json_mtime,
            package_lock_mtime=current.npm.package_lock_mtime,
            remote_commits=current.remote,
            npm_providers=npm_providers,
            remote_providers=remote_providers,
        )
        await asyncio.to_thread(self.write, record)
        return record.providers_for(scope)
