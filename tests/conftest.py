"""
Pytest configuration and fixtures.

Git is never invoked for real: the `fake_git` fixture replaces the three git
entry points used by RemoteRepositoryManager with an in-memory model of remote
repositories whose "clones" are plain directories containing a `.git` folder.
"""

import json
from pathlib import Path
from typing import Any, Optional
from unittest.mock import patch

import pytest

from ai_ready.config import Settings, settings_for_test
from ai_ready.lib.git import GitResult


def marketplace_manifest(name: str, *plugins: str, version: str = "1.0.0") -> dict[str, Any]:
    """A minimal valid marketplace.json body."""
    return {
        "name": name,
        "owner": {"name": "Test Owner"},
        "plugins": [
            {"name": plugin, "source": f"./plugins/{plugin}", "version": version}
            for plugin in plugins
        ],
    }


def write_manifest(source_dir: Path, manifest: Any) -> Path:
    path = source_dir / ".claude-plugin" / "marketplace.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(manifest, str):
        path.write_text(manifest)
    else:
        path.write_text(json.dumps(manifest))
    return path


class FakeGit:
    """In-memory stand-in for the git binary."""

    def __init__(self):
        self.available = True
        self.remotes: dict[str, dict[str, Any]] = {}  # url -> {"sha", "manifest"}
        self.heads: dict[str, str] = {}  # clone path -> HEAD
        self.origins: dict[str, str] = {}  # clone path -> url
        self.calls: list[tuple[str, ...]] = []
        self.pull_error: Optional[str] = None

    def add_remote(self, url: str, manifest: Optional[dict[str, Any]] = None, sha: str = "a" * 40) -> None:
        self.remotes[url] = {"sha": sha, "manifest": manifest}

    def push(self, url: str, sha: str, manifest: Optional[dict[str, Any]] = None) -> None:
        """Advance a remote to a new commit."""
        remote = self.remotes[url]
        remote["sha"] = sha
        if manifest is not None:
            remote["manifest"] = manifest

    def _checkout(self, dest: Path, url: str) -> None:
        remote = self.remotes[url]
        (dest / ".git").mkdir(parents=True, exist_ok=True)
        if remote["manifest"] is not None:
            write_manifest(dest, remote["manifest"])
        self.heads[str(dest)] = remote["sha"]
        self.origins[str(dest)] = url

    async def git_version(self) -> Optional[str]:
        return "git version 2.43.0" if self.available else None

    async def rev_parse_head(self, repo_dir: Path) -> Optional[str]:
        if not (Path(repo_dir) / ".git").exists():
            return None
        return self.heads.get(str(repo_dir))

    async def run_git(self, *args: str, cwd: Optional[Path] = None, timeout: float = 10.0) -> GitResult:
        self.calls.append(args)
        if args[0] == "clone":
            url, dest = args[-2], Path(args[-1])
            if url not in self.remotes:
                # git leaves a partial directory behind on failure
                dest.mkdir(parents=True, exist_ok=True)
                (dest / ".git").mkdir(exist_ok=True)
                return GitResult(returncode=128, stderr=f"fatal: repository '{url}' not found")
            self._checkout(dest, url)
            return GitResult(returncode=0)
        if args[0] == "pull":
            if self.pull_error:
                return GitResult(returncode=1, stderr=self.pull_error)
            self._checkout(Path(cwd), self.origins[str(cwd)])
            return GitResult(returncode=0, stdout="Fast-forward")
        return GitResult(returncode=1, stderr=f"unsupported: git {' '.join(args)}")


@pytest.fixture
def fake_git():
    git = FakeGit()
    with patch("ai_ready.core.remote_repos.run_git", git.run_git), \
         patch("ai_ready.core.remote_repos.rev_parse_head", git.rev_parse_head), \
         patch("ai_ready.core.remote_repos.git_version", git.git_version):
        yield git


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a fresh temporary directory."""
    return settings_for_test(tmp_path, min_disk_space_mb=1)


@pytest.fixture
def project_dir(settings: Settings) -> Path:
    settings.project_dir.mkdir(parents=True, exist_ok=True)
    (settings.project_dir / "package.json").write_text('{"name": "host-project"}')
    return settings.project_dir


@pytest.fixture
def make_package(project_dir: Path):
    """Create node_modules/<name> with a package.json and optional manifest."""

    def _make(
        name: str,
        manifest: Any = None,
        version: Optional[str] = "1.0.0",
        package_json: bool = True,
    ) -> Path:
        package_dir = project_dir / "node_modules" / name
        package_dir.mkdir(parents=True, exist_ok=True)
        if package_json:
            body: dict[str, Any] = {"name": name}
            if version:
                body["version"] = version
            (package_dir / "package.json").write_text(json.dumps(body))
        if manifest is not None:
            write_manifest(package_dir, manifest)
        return package_dir

    return _make
