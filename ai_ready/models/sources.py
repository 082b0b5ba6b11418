"""
Remote source configuration models.

Persisted at {config_dir}/config.json:

    {"version": "1.0.0", "sourcePriority": ["npm", "remote"], "repos": [...]}
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

DEFAULT_CONFIG_VERSION = "1.0.0"
DEFAULT_SOURCE_PRIORITY: list[Literal["npm", "remote"]] = ["npm", "remote"]


class RemoteRepoEntry(BaseModel):
    """A configured git repository."""

    id: str  # sha256(normalized_url)[:12]
    url: str
    normalized_url: str = Field(alias="normalizedUrl")
    name: str
    added_at: str = Field(alias="addedAt")  # ISO timestamp
    cloned_at: Optional[str] = Field(default=None, alias="clonedAt")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    last_reviewed_commit: Optional[str] = Field(default=None, alias="lastReviewedCommit")
    allow_auto_update: bool = Field(default=False, alias="allowAutoUpdate")

    model_config = {"populate_by_name": True}


class SourcesConfig(BaseModel):
    version: str = DEFAULT_CONFIG_VERSION
    source_priority: list[Literal["npm", "remote"]] = Field(
        default_factory=lambda: list(DEFAULT_SOURCE_PRIORITY),
        alias="sourcePriority",
    )
    repos: list[RemoteRepoEntry] = Field(default_factory=list)

    model_config = {"populate_by_name": True}
