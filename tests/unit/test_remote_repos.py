"""
Tests for the clone / update / remove / repair lifecycle.

Git itself is replaced by the FakeGit fixture; disk-space checks use the
real filesystem with thresholds chosen to pass or fail deterministically.
"""

from unittest.mock import AsyncMock, patch

import pytest
from conftest import marketplace_manifest

from ai_ready.core.remote_repos import RemoteRepositoryManager, RepoOperationResult
from ai_ready.core.sources import new_repo_entry

URL = "https://github.com/acme/tools.git"


@pytest.fixture
def manager(settings):
    return RemoteRepositoryManager(settings.repos_dir, git_timeout=30, min_disk_space_mb=1)


@pytest.fixture
def repo():
    return new_repo_entry(URL)


class TestClone:
    @pytest.mark.asyncio
    async def test_shallow_clone_into_id_path(self, manager, repo, fake_git):
        fake_git.add_remote(URL, marketplace_manifest("acme-tools", "lint"), sha="1" * 40)

        result = await manager.clone(repo)

        assert result.success
        assert result.commit_sha == "1" * 40
        assert manager.is_cloned(repo)
        assert fake_git.calls == [
            ("clone", "--depth", "1", "--", URL, str(manager.repo_path(repo.id))),
        ]

    @pytest.mark.asyncio
    async def test_git_missing_has_no_side_effects(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        fake_git.available = False

        result = await manager.clone(repo)

        assert not result.success
        assert "Git is not installed" in result.error
        assert fake_git.calls == []
        assert not manager.repos_dir.exists()

    @pytest.mark.asyncio
    async def test_insufficient_disk_has_no_side_effects(self, settings, repo, fake_git):
        manager = RemoteRepositoryManager(settings.repos_dir, min_disk_space_mb=10**12)
        fake_git.add_remote(URL)

        result = await manager.clone(repo)

        assert not result.success
        assert result.error.startswith("Insufficient disk space")
        assert fake_git.calls == []
        assert not manager.repos_dir.exists()

    @pytest.mark.asyncio
    async def test_disk_probe_error_does_not_block(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        with patch("ai_ready.core.remote_repos.shutil.disk_usage", side_effect=OSError("no statvfs")):
            result = await manager.clone(repo)
        assert result.success

    @pytest.mark.asyncio
    async def test_failed_clone_leaves_nothing_behind(self, manager, repo, fake_git):
        result = await manager.clone(repo)

        assert not result.success
        assert result.error.startswith("Git clone failed")
        assert not manager.repo_path(repo.id).exists()

    @pytest.mark.asyncio
    async def test_unexpected_error_cleans_up_and_propagates(self, manager, repo, fake_git):
        async def exploding_git(*args, **kwargs):
            manager.repo_path(repo.id).mkdir(parents=True)
            raise RuntimeError("boom")

        with patch("ai_ready.core.remote_repos.run_git", exploding_git):
            with pytest.raises(RuntimeError):
                await manager.clone(repo)

        assert not manager.repo_path(repo.id).exists()

    @pytest.mark.asyncio
    async def test_unresolvable_head_after_clone(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        with patch("ai_ready.core.remote_repos.rev_parse_head", AsyncMock(return_value=None)):
            result = await manager.clone(repo)

        assert not result.success
        assert "HEAD could not be resolved" in result.error
        assert not manager.repo_path(repo.id).exists()

    @pytest.mark.asyncio
    async def test_already_cloned(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        await manager.clone(repo)

        result = await manager.clone(repo)

        assert not result.success
        assert "already cloned" in result.error


class TestUpdate:
    @pytest.mark.asyncio
    async def test_up_to_date(self, manager, repo, fake_git):
        fake_git.add_remote(URL, sha="1" * 40)
        await manager.clone(repo)

        result = await manager.update(repo)

        assert result.success
        assert result.changed is False
        assert result.commit_sha == "1" * 40

    @pytest.mark.asyncio
    async def test_advanced(self, manager, repo, fake_git):
        fake_git.add_remote(URL, sha="1" * 40)
        await manager.clone(repo)
        fake_git.push(URL, "2" * 40)

        result = await manager.update(repo)

        assert result.success
        assert result.changed is True
        assert result.commit_sha == "2" * 40
        assert ("pull", "--ff-only") in fake_git.calls

    @pytest.mark.asyncio
    async def test_not_cloned(self, manager, repo, fake_git):
        result = await manager.update(repo)
        assert not result.success
        assert "not cloned" in result.error

    @pytest.mark.asyncio
    async def test_pull_failure_is_a_result(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        await manager.clone(repo)
        fake_git.pull_error = "fatal: Not possible to fast-forward, aborting."

        result = await manager.update(repo)

        assert not result.success
        assert result.error == "Git pull failed: fatal: Not possible to fast-forward, aborting."

    @pytest.mark.asyncio
    async def test_git_missing(self, manager, repo, fake_git):
        fake_git.available = False
        result = await manager.update(repo)
        assert not result.success


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        await manager.clone(repo)

        first = await manager.remove(repo)
        second = await manager.remove(repo)

        assert first.success and second.success
        assert not manager.repo_path(repo.id).exists()


class TestRepair:
    @pytest.mark.asyncio
    async def test_repair_reclones(self, manager, repo, fake_git):
        fake_git.add_remote(URL, sha="1" * 40)
        await manager.clone(repo)
        (manager.repo_path(repo.id) / "stray-file").write_text("local damage")
        fake_git.push(URL, "3" * 40)

        result = await manager.repair(repo)

        assert result.success
        assert result.commit_sha == "3" * 40
        assert not (manager.repo_path(repo.id) / "stray-file").exists()

    @pytest.mark.asyncio
    async def test_repair_stops_when_remove_fails(self, manager, repo, fake_git):
        fake_git.add_remote(URL)
        failing_remove = AsyncMock(return_value=RepoOperationResult.failure("permission denied"))

        with patch.object(manager, "remove", failing_remove):
            result = await manager.repair(repo)

        assert not result.success
        assert result.error == "Failed to remove existing clone: permission denied"
        assert fake_git.calls == []
