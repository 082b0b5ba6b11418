"""
Lifecycle of git-backed sources: clone, update, remove, repair.

Each configured repository is cloned (shallow) into `{repos_dir}/{repo.id}`.
Preflight checks (git reachable, enough free disk) run before anything is
written. Network operations are bounded by a timeout, and every failure is
reported as a RepoOperationResult rather than raised.

    configured --clone--> cloned --update--> cloned
    cloned --remove--> configured (clone directory deleted)
    cloned --repair--> remove + clone --> cloned
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ai_ready.lib.git import git_version, rev_parse_head, run_git
from ai_ready.models.sources import RemoteRepoEntry

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 300.0  # 5 minutes
DEFAULT_MIN_DISK_SPACE_MB = 100


@dataclass
class RepoOperationResult:
    success: bool
    commit_sha: Optional[str] = None
    changed: bool = False
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "RepoOperationResult":
        return cls(success=False, error=error)


class RemoteRepositoryManager:
    """Materializes configured repositories on disk."""

    def __init__(
        self,
        repos_dir: Path,
        git_timeout: float = DEFAULT_GIT_TIMEOUT,
        min_disk_space_mb: int = DEFAULT_MIN_DISK_SPACE_MB,
    ):
        self.repos_dir = repos_dir
        self.git_timeout = git_timeout
        self.min_disk_space_mb = min_disk_space_mb

    def repo_path(self, repo_id: str) -> Path:
        return self.repos_dir / repo_id

    def is_cloned(self, repo: RemoteRepoEntry) -> bool:
        return (self.repo_path(repo.id) / ".git").exists()

    async def is_git_available(self) -> bool:
        return await git_version() is not None

    def free_space_mb(self) -> float:
        """Free space at the data root (nearest existing ancestor of repos_dir)."""
        probe = self.repos_dir
        while not probe.exists() and probe != probe.parent:
            probe = probe.parent
        return shutil.disk_usage(probe).free / (1024 * 1024)

    async def _preflight(self) -> Optional[str]:
        """Return an error message if cloning cannot proceed, else None."""
        if not await self.is_git_available():
            return "Git is not installed or not available in PATH. Please install Git and try again."

        try:
            free_mb = self.free_space_mb()
        except OSError as e:
            logger.warning(f"Could not check disk space: {e}")
            return None

        if free_mb < self.min_disk_space_mb:
            return (
                f"Insufficient disk space. Available: {free_mb:.0f}MB, "
                f"Required: {self.min_disk_space_mb}MB"
            )
        return None

    async def current_commit(self, repo: RemoteRepoEntry) -> Optional[str]:
        """HEAD of a cloned repo, or None if not cloned or unreadable."""
        if not self.is_cloned(repo):
            return None
        return await rev_parse_head(self.repo_path(repo.id))

    def _cleanup(self, path: Path) -> None:
        if path.exists():
            shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning(f"Could not fully remove partial clone at {path}")

    async def clone(self, repo: RemoteRepoEntry, shallow: bool = True) -> RepoOperationResult:
        """Clone a repository. Returns the HEAD commit on success."""
        error = await self._preflight()
        if error:
            return RepoOperationResult.failure(error)

        if self.is_cloned(repo):
            return RepoOperationResult.failure("Repository already cloned locally")

        local_path = self.repo_path(repo.id)
        self.repos_dir.mkdir(parents=True, exist_ok=True)

        args = ["clone"]
        if shallow:
            args += ["--depth", "1"]
        args += ["--", repo.url, str(local_path)]

        logger.info(f"Cloning {repo.url} into {local_path}")
        try:
            result = await run_git(*args, timeout=self.git_timeout)
            if not result.ok:
                self._cleanup(local_path)
                return RepoOperationResult.failure(f"Git clone failed: {result.error}")

            commit_sha = await rev_parse_head(local_path)
            if not commit_sha:
                self._cleanup(local_path)
                return RepoOperationResult.failure("Clone completed but HEAD could not be resolved")
        except Exception:
            self._cleanup(local_path)
            raise

        logger.info(f"Cloned {repo.name} at {commit_sha[:12]}")
        return RepoOperationResult(success=True, commit_sha=commit_sha, changed=True)

    async def update(self, repo: RemoteRepoEntry) -> RepoOperationResult:
        """Pull the latest changes and report whether HEAD moved."""
        if not await self.is_git_available():
            return RepoOperationResult.failure("Git is not installed or not available in PATH")

        if not self.is_cloned(repo):
            return RepoOperationResult.failure("Repository not cloned locally")

        local_path = self.repo_path(repo.id)
        before = await rev_parse_head(local_path)

        result = await run_git("pull", "--ff-only", cwd=local_path, timeout=self.git_timeout)
        if not result.ok:
            return RepoOperationResult.failure(f"Git pull failed: {result.error}")

        after = await rev_parse_head(local_path)
        changed = before != after
        logger.info(
            f"Updated {repo.name}: "
            + (f"{(before or '?')[:12]} -> {(after or '?')[:12]}" if changed else "up to date")
        )
        return RepoOperationResult(success=True, commit_sha=after, changed=changed)

    async def remove(self, repo: RemoteRepoEntry) -> RepoOperationResult:
        """Delete the local clone. Already-absent counts as success."""
        local_path = self.repo_path(repo.id)
        try:
            await asyncio.to_thread(shutil.rmtree, local_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            return RepoOperationResult.failure(str(e))
        logger.info(f"Removed clone of {repo.name}")
        return RepoOperationResult(success=True)

    async def repair(self, repo: RemoteRepoEntry) -> RepoOperationResult:
        """Delete and re-clone a repository."""
        removed = await self.remove(repo)
        if not removed.success:
            return RepoOperationResult.failure(f"Failed to remove existing clone: {removed.error}")
        return await self.clone(repo)
