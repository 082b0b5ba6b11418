"""
Plugin marketplace models.

A marketplace manifest lives at `{source}/.claude-plugin/marketplace.json`:

    {
      "name": "acme-tools",
      "owner": {"name": "Acme"},
      "plugins": [
        {"name": "lint", "source": "./plugins/lint", "version": "1.0.0"},
        {"name": "deploy", "source": {"source": "github", "repo": "acme/deploy"}}
      ]
    }

Integrations live under `{source}/ai-ready/integrations/<name>/` as markdown
files with YAML frontmatter (AI_INTEGRATION.md and/or claude-skill/SKILL.md).
"""

import json
import re
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

KEBAB_CASE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

INTEGRATION_GENERIC = "genericIntegration"
INTEGRATION_CLAUDE_SKILL = "claudeSkill"


def _check_kebab(value: str) -> str:
    if not KEBAB_CASE.match(value):
        raise ValueError(f"must be kebab-case, got {value!r}")
    return value


class MarketplaceOwner(BaseModel):
    """Marketplace maintainer information."""

    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None


class PluginSourceRef(BaseModel):
    """Object form of a plugin source: a GitHub repo or a git URL."""

    source: Literal["github", "url"]
    repo: Optional[str] = None
    url: Optional[str] = None
    ref: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> "PluginSourceRef":
        if self.source == "github" and not self.repo:
            raise ValueError("github source requires 'repo'")
        if self.source == "url" and not self.url:
            raise ValueError("url source requires 'url'")
        return self

    def to_source_string(self) -> str:
        if self.source == "github":
            suffix = f"#{self.ref}" if self.ref else ""
            return f"github:{self.repo}{suffix}"
        return self.url or json.dumps(self.model_dump(exclude_none=True))


class PluginRef(BaseModel):
    """One plugin entry in a marketplace manifest."""

    name: str
    source: Union[str, PluginSourceRef]
    version: Optional[str] = None
    description: Optional[str] = None

    # author, homepage, keywords, hooks, ... are carried through untouched
    model_config = {"extra": "allow"}

    @field_validator("name")
    @classmethod
    def _name_is_kebab(cls, v: str) -> str:
        return _check_kebab(v)

    @property
    def source_string(self) -> str:
        if isinstance(self.source, str):
            return self.source
        return self.source.to_source_string()


class MarketplaceMetadata(BaseModel):
    description: Optional[str] = None
    version: Optional[str] = None
    plugin_root: Optional[str] = Field(default=None, alias="pluginRoot")

    model_config = {"populate_by_name": True}


class MarketplaceDeclaration(BaseModel):
    """Contents of .claude-plugin/marketplace.json."""

    name: str
    owner: MarketplaceOwner
    plugins: list[PluginRef]
    metadata: Optional[MarketplaceMetadata] = None

    model_config = {"extra": "allow"}

    @field_validator("name")
    @classmethod
    def _name_is_kebab(cls, v: str) -> str:
        return _check_kebab(v)


class Integration(BaseModel):
    """An integration declared under ai-ready/integrations/."""

    name: str
    summary: str
    types: list[Literal["genericIntegration", "claudeSkill"]]


class Provider(BaseModel):
    """One discovered source of declarations: an npm package or a cloned repo."""

    source_kind: Literal["npm", "remote"] = Field(alias="sourceKind")
    source_id: str = Field(alias="sourceId")  # package name or repo id
    source_path: str = Field(alias="sourcePath")  # canonical absolute path
    version: Optional[str] = None  # package.json version (npm)
    commit_sha: Optional[str] = Field(default=None, alias="commitSHA")  # HEAD (remote)
    declarations: list[MarketplaceDeclaration] = Field(default_factory=list)
    integrations: list[Integration] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @property
    def revision(self) -> str:
        """Version for npm providers, commit SHA for remote ones."""
        if self.source_kind == "remote":
            return self.commit_sha or "unknown"
        return self.version or "unknown"


class ManifestParseResult(BaseModel):
    """Outcome of parsing a manifest file.

    `status` is the tag: "ok" carries a declaration, "missing" means no
    manifest at that path, "invalid" carries the reason it was rejected.
    """

    status: Literal["ok", "missing", "invalid"]
    path: str
    declaration: Optional[MarketplaceDeclaration] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"
