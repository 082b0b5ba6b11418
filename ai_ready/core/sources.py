"""
Remote source configuration.

Repositories are identified by a short hash of their normalized URL so that
`git@github.com:o/r.git`, `https://github.com/o/r` and
`https://github.com/o/r/` all map to the same id and clone directory.
"""

import hashlib
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ai_ready.lib.atomic import atomic_write_json
from ai_ready.models.sources import (
    DEFAULT_CONFIG_VERSION,
    DEFAULT_SOURCE_PRIORITY,
    RemoteRepoEntry,
    SourcesConfig,
)

logger = logging.getLogger(__name__)

REPO_ID_LENGTH = 12


def normalize_git_url(url: str) -> str:
    """Normalize a git URL to canonical https form."""
    url = url.strip()
    url = re.sub(r"/+$", "", url)
    url = re.sub(r"\.git$", "", url)
    # git@host:owner/repo -> https://host/owner/repo
    url = re.sub(r"^git@([^:]+):", r"https://\1/", url)
    # ssh://git@host/owner/repo -> https://host/owner/repo
    url = re.sub(r"^ssh://git@([^/]+)/", r"https://\1/", url)
    return url


def generate_repo_id(normalized_url: str) -> str:
    """12-character SHA-256 prefix of a normalized URL."""
    return hashlib.sha256(normalized_url.encode("utf-8")).hexdigest()[:REPO_ID_LENGTH]


def repo_id_for_url(url: str) -> str:
    return generate_repo_id(normalize_git_url(url))


def derive_repo_name(url: str) -> str:
    """Derive a display name from a git URL."""
    url = re.sub(r"\.git$", "", url.strip().rstrip("/"))

    match = re.search(r"[/:]([^/:]+)$", url)
    if match:
        return match.group(1)

    match = re.search(r"@([^:/]+)", url)
    if match:
        return match.group(1)

    return url


def new_repo_entry(url: str) -> RemoteRepoEntry:
    normalized = normalize_git_url(url)
    return RemoteRepoEntry(
        id=generate_repo_id(normalized),
        url=url,
        normalized_url=normalized,
        name=derive_repo_name(url),
        added_at=datetime.now(timezone.utc).isoformat(),
    )


class SourcesStore:
    """Reads and writes the configured repository list."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> SourcesConfig:
        """Load the config, writing a default one if none exists.

        Missing top-level fields are filled with defaults.
        """
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            config = SourcesConfig()
            self.save(config)
            return config

        if not isinstance(raw, dict):
            raise ValueError(f"Sources config is not an object: {self.path}")

        migrated = {
            "version": raw.get("version") or DEFAULT_CONFIG_VERSION,
            "sourcePriority": raw.get("sourcePriority") or list(DEFAULT_SOURCE_PRIORITY),
            "repos": raw.get("repos") or [],
        }
        try:
            return SourcesConfig.model_validate(migrated)
        except ValidationError as e:
            raise ValueError(f"Invalid sources config at {self.path}: {e}") from e

    def save(self, config: SourcesConfig) -> None:
        atomic_write_json(self.path, config.model_dump(by_alias=True))

    @staticmethod
    def find(config: SourcesConfig, identifier: str) -> Optional[RemoteRepoEntry]:
        """Find a repository by id, name, or URL (any equivalent form)."""
        normalized = normalize_git_url(identifier)
        identifier_id = generate_repo_id(normalized)

        for matches in (
            lambda r: r.id == identifier,
            lambda r: r.name == identifier,
            lambda r: normalize_git_url(r.url) == normalized,
            lambda r: r.id == identifier_id,
        ):
            for repo in config.repos:
                if matches(repo):
                    return repo
        return None
