"""
Scan cache models.

The cache file sits in the project directory and records what the scanner
found together with the cheap signals it was computed from.
"""

from typing import Literal

from pydantic import BaseModel, Field

from ai_ready.models.plugin import Provider

Scope = Literal["npm", "remote", "all"]

# Canonical mtime for a file that does not exist
MISSING_MTIME = 0


class NpmFingerprint(BaseModel):
    package_json_mtime: int = MISSING_MTIME  # ms
    package_lock_mtime: int = MISSING_MTIME  # ms


class CacheFingerprint(BaseModel):
    npm: NpmFingerprint = Field(default_factory=NpmFingerprint)
    remote: dict[str, str] = Field(default_factory=dict)  # repo id -> HEAD SHA


class CacheRecord(BaseModel):
    """On-disk cache contents."""

    scanned_at: str = Field(alias="scannedAt")
    package_json_mtime: int = Field(alias="packageJsonMTime")
    package_lock_mtime: int = Field(alias="packageLockMTime")
    remote_commits: dict[str, str] = Field(default_factory=dict, alias="remoteCommits")
    npm_providers: list[Provider] = Field(alias="npmProviders")
    remote_providers: list[Provider] = Field(alias="remoteProviders")

    model_config = {"populate_by_name": True}

    @property
    def fingerprint(self) -> CacheFingerprint:
        return CacheFingerprint(
            npm=NpmFingerprint(
                package_json_mtime=self.package_json_mtime,
                package_lock_mtime=self.package_lock_mtime,
            ),
            remote=dict(self.remote_commits),
        )

    def providers_for(self, scope: Scope) -> list[Provider]:
        if scope == "npm":
            return list(self.npm_providers)
        if scope == "remote":
            return list(self.remote_providers)
        return [*self.npm_providers, *self.remote_providers]
