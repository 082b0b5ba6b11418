"""Tests for the async git subprocess wrapper."""

import asyncio
import os
from unittest.mock import AsyncMock, Mock, patch

import pytest

from ai_ready.lib.git import GitResult, git_version, rev_parse_head, run_git


class FinishedProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b""):
        self.returncode = returncode
        self._output = (stdout, stderr)

    async def communicate(self):
        return self._output


class HangingProcess:
    def __init__(self):
        self.returncode = None
        self.killed = False

    async def communicate(self):
        await asyncio.sleep(60)
        return b"", b""

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


def _spawn(process):
    return patch("ai_ready.lib.git.asyncio.create_subprocess_exec", AsyncMock(return_value=process))


class TestRunGit:
    @pytest.mark.asyncio
    async def test_captures_output(self):
        with _spawn(FinishedProcess(stdout=b"git version 2.43.0\n")) as spawn:
            result = await run_git("version")

        assert result.ok
        assert result.stdout == "git version 2.43.0\n"
        assert spawn.call_args.args[:2] == ("git", "version")

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        with _spawn(FinishedProcess(returncode=128, stderr=b"fatal: not a git repository\n")):
            result = await run_git("status")

        assert not result.ok
        assert result.error == "fatal: not a git repository"

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        with patch(
            "ai_ready.lib.git.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("git")),
        ):
            result = await run_git("version")

        assert result.returncode == 127
        assert not result.ok

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        process = HangingProcess()
        with _spawn(process):
            result = await run_git("clone", "https://example.com/r", timeout=0.05)

        assert result.timed_out
        assert not result.ok
        assert result.error == "git operation timed out"
        assert process.killed

    @pytest.mark.asyncio
    async def test_timeout_after_process_exited(self):
        process = HangingProcess()
        process.kill = Mock(side_effect=ProcessLookupError())
        with _spawn(process):
            result = await run_git("fetch", timeout=0.05)

        assert result.timed_out
        process.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_never_prompts_for_credentials(self):
        with _spawn(FinishedProcess()) as spawn, patch.dict(os.environ, {"GIT_SSH_COMMAND": "ssh -q"}):
            await run_git("clone", "https://example.com/private", "/tmp/dest")

        kwargs = spawn.call_args.kwargs
        assert kwargs["stdin"] == asyncio.subprocess.DEVNULL
        assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"
        assert kwargs["env"]["GIT_SSH_COMMAND"] == "ssh -q"


class TestHelpers:
    @pytest.mark.asyncio
    async def test_git_version_unavailable(self):
        with _spawn(FinishedProcess(returncode=1)):
            assert await git_version() is None

    @pytest.mark.asyncio
    async def test_rev_parse_head(self, tmp_path):
        with _spawn(FinishedProcess(stdout=b"abc123\n")) as spawn:
            assert await rev_parse_head(tmp_path) == "abc123"
        assert spawn.call_args.kwargs["cwd"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_rev_parse_head_failure(self, tmp_path):
        with _spawn(FinishedProcess(returncode=128)):
            assert await rev_parse_head(tmp_path) is None


class TestGitResult:
    def test_error_falls_back_to_exit_code(self):
        assert GitResult(returncode=2).error == "git exited with code 2"
