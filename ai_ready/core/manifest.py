"""
Manifest parsing.

Two manifest kinds are recognised inside a source directory:

    .claude-plugin/marketplace.json          # marketplace declaration
    ai-ready/integrations/<name>/
        AI_INTEGRATION.md                    # generic integration (frontmatter)
        claude-skill/SKILL.md                # Claude skill (frontmatter)

Malformed or invalid manifests never raise; they come back as an "invalid"
result (marketplace) or None (integration) and the caller moves on.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import frontmatter
import yaml
from pydantic import ValidationError

from ai_ready.models.plugin import (
    INTEGRATION_CLAUDE_SKILL,
    INTEGRATION_GENERIC,
    Integration,
    ManifestParseResult,
    MarketplaceDeclaration,
)

logger = logging.getLogger(__name__)

MARKETPLACE_MANIFEST = Path(".claude-plugin") / "marketplace.json"
INTEGRATIONS_DIR = Path("ai-ready") / "integrations"
GENERIC_INTEGRATION_FILE = "AI_INTEGRATION.md"
SKILL_FILE = Path("claude-skill") / "SKILL.md"


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "(root)"
        lines.append(f"  - {field}: {err.get('msg', 'invalid')}")
    return "\n".join(lines)


def parse_marketplace_json(path: Path) -> ManifestParseResult:
    """Parse and validate a marketplace.json file."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ManifestParseResult(status="missing", path=str(path))
    except (IsADirectoryError, NotADirectoryError, PermissionError, UnicodeDecodeError) as e:
        return ManifestParseResult(status="invalid", path=str(path), error=str(e))

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        return ManifestParseResult(status="invalid", path=str(path), error=f"Malformed JSON: {e}")

    try:
        declaration = MarketplaceDeclaration.model_validate(data)
    except ValidationError as e:
        return ManifestParseResult(
            status="invalid", path=str(path), error=_format_validation_error(e)
        )

    return ManifestParseResult(status="ok", path=str(path), declaration=declaration)


def parse_frontmatter_metadata(path: Path) -> Optional[dict[str, str]]:
    """Read `name` and `summary` from a markdown file's frontmatter.

    Returns None if the file is absent, unparseable, or lacks either field.
    """
    try:
        post = frontmatter.load(str(path))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning(f"Failed to parse frontmatter in {path}: {e}")
        return None

    meta: dict[str, Any] = dict(post.metadata)
    name = meta.get("name")
    summary = meta.get("summary")
    if not name or not summary:
        return None
    return {"name": str(name), "summary": str(summary)}


def parse_integration(integration_dir: Path) -> Optional[Integration]:
    """Build an Integration from one directory under ai-ready/integrations/."""
    name = integration_dir.name
    summary = ""
    types: list[str] = []

    generic = parse_frontmatter_metadata(integration_dir / GENERIC_INTEGRATION_FILE)
    if generic:
        types.append(INTEGRATION_GENERIC)
        name = generic["name"]
        summary = generic["summary"]

    skill = parse_frontmatter_metadata(integration_dir / SKILL_FILE)
    if skill:
        types.append(INTEGRATION_CLAUDE_SKILL)
        # Generic metadata wins; skill fills the gaps
        if not generic:
            name = skill["name"]
        if not summary:
            summary = skill["summary"]

    if not types:
        return None

    return Integration(name=name, summary=summary, types=types)


def parse_integrations(source_dir: Path) -> list[Integration]:
    """Parse every integration directory under a source's ai-ready/integrations/."""
    integrations_dir = source_dir / INTEGRATIONS_DIR
    if not integrations_dir.is_dir():
        return []

    integrations: list[Integration] = []
    for entry in sorted(integrations_dir.iterdir()):
        if not entry.is_dir():
            continue
        integration = parse_integration(entry)
        if integration:
            integrations.append(integration)
    return integrations


class ManifestParser:
    """Interprets the manifests found in one source directory."""

    def parse_declarations(self, source_dir: Path) -> list[MarketplaceDeclaration]:
        result = parse_marketplace_json(source_dir / MARKETPLACE_MANIFEST)
        if result.ok and result.declaration:
            return [result.declaration]
        if result.status == "invalid":
            logger.warning(f"Invalid marketplace.json at {result.path}, skipping:\n{result.error}")
        return []

    def parse_integrations(self, source_dir: Path) -> list[Integration]:
        return parse_integrations(source_dir)
