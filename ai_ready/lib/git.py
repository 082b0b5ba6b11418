"""
Thin async wrapper around the git binary.

All git semantics are delegated to the external `git` executable. Failures
(non-zero exit, missing binary, timeout) come back as a GitResult rather than
an exception.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Local queries (version, rev-parse) should never take long
LOCAL_GIT_TIMEOUT = 10.0


@dataclass
class GitResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def error(self) -> str:
        if self.timed_out:
            return "git operation timed out"
        return self.stderr.strip() or self.stdout.strip() or f"git exited with code {self.returncode}"


async def run_git(
    *args: str,
    cwd: Optional[Path] = None,
    timeout: float = LOCAL_GIT_TIMEOUT,
) -> GitResult:
    """Run `git <args>` and capture its output."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", *args,
            cwd=str(cwd) if cwd else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        return GitResult(returncode=127, stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            # Exited between the timeout and the kill
            pass
        await proc.wait()
        logger.warning(f"git {args[0] if args else ''} timed out after {timeout}s")
        return GitResult(returncode=-1, timed_out=True)

    return GitResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else "",
    )


async def git_version() -> Optional[str]:
    """Return `git version` output, or None if git is unusable."""
    result = await run_git("version")
    if not result.ok:
        return None
    return result.stdout.strip()


async def rev_parse_head(repo_dir: Path) -> Optional[str]:
    """Return the full HEAD commit SHA of a work tree, or None."""
    result = await run_git("rev-parse", "HEAD", cwd=repo_dir)
    if not result.ok:
        return None
    sha = result.stdout.strip()
    return sha or None
