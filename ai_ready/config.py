"""
Configuration management for ai-ready.

Precedence: env vars > .env file > config.yaml > defaults

Config file: {config_dir}/config.yaml   (tool settings)
Sources:     {config_dir}/config.json   (configured git repositories)
Clones:      {data_dir}/repos/<repo id>/

config_dir and data_dir follow the XDG base directory layout.
"""

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

APP_DIR_NAME = "ai-ready"
CACHE_FILE_NAME = ".air-plugin-cache.json"

# Known config keys that can be persisted to config.yaml
CONFIG_KEYS = {
    "claude_dir", "settings_format", "git_timeout", "min_disk_space_mb",
    "max_backups", "log_level",
}


def _xdg_dir(env_var: str, fallback: str) -> Path:
    raw = os.environ.get(env_var, "")
    base = Path(raw).expanduser() if raw else Path.home() / fallback
    return base / APP_DIR_NAME


def default_config_dir() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def default_data_dir() -> Path:
    return _xdg_dir("XDG_DATA_HOME", ".local/share")


def get_config_path(config_dir: Path) -> Path:
    """Get the config.yaml path for a config directory."""
    return config_dir / "config.yaml"


def load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load config.yaml from the config directory."""
    config_file = get_config_path(config_dir)
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a dict, ignoring: {config_file}")
            return {}
        return data
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def save_yaml_config(config_dir: Path, data: dict[str, Any]) -> Path:
    """Write config values to config.yaml. Unknown keys are dropped."""
    config_file = get_config_path(config_dir)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    filtered = {k: v for k, v in data.items() if k in CONFIG_KEYS}
    with open(config_file, "w") as f:
        yaml.safe_dump(filtered, f, default_flow_style=False, sort_keys=False)
    return config_file


class Settings(BaseSettings):
    """Per-invocation configuration. Precedence: env vars > .env > config.yaml > defaults."""

    project_dir: Path = Field(
        default_factory=Path.cwd,
        description="Project whose node_modules is scanned and where the cache lives",
    )
    config_dir: Path = Field(
        default_factory=default_config_dir,
        description="Directory holding config.yaml and the sources config",
    )
    data_dir: Path = Field(
        default_factory=default_data_dir,
        description="Directory holding cloned repositories",
    )
    claude_dir: Path = Field(
        default_factory=lambda: Path.home() / ".claude",
        description="Host application directory containing the settings file",
    )

    cache_file: str = Field(default=CACHE_FILE_NAME, description="Cache file name")
    settings_format: Literal["json", "yaml"] = Field(
        default="json",
        description="Backing format of the host settings store",
    )

    # Remote repositories
    git_timeout: float = Field(default=300.0, description="Timeout for clone/pull (seconds)")
    min_disk_space_mb: int = Field(default=100, description="Free space required to clone")

    max_backups: int = Field(default=5, description="Rotated settings backups to retain")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    model_config = {
        "env_prefix": "AIR_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars and .env."""
        if not isinstance(data, dict):
            data = {}

        config_dir = data.get("config_dir") or os.environ.get("AIR_CONFIG_DIR")
        config_dir = Path(config_dir).expanduser() if config_dir else default_config_dir()

        for key, value in load_yaml_config(config_dir).items():
            if key not in CONFIG_KEYS:
                continue
            if key not in data or data[key] is None:
                if os.environ.get(f"AIR_{key.upper()}") is None:
                    data[key] = value

        return data

    @property
    def repos_dir(self) -> Path:
        return self.data_dir / "repos"

    @property
    def sources_path(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def cache_path(self) -> Path:
        return self.project_dir / self.cache_file

    @property
    def settings_path(self) -> Path:
        suffix = "yaml" if self.settings_format == "yaml" else "json"
        return self.claude_dir / f"settings.{suffix}"


def settings_for_test(root: Path, **overrides: Any) -> Settings:
    """Build Settings rooted entirely under `root` (no XDG or home lookups)."""
    values: dict[str, Any] = {
        "project_dir": root / "project",
        "config_dir": root / "config",
        "data_dir": root / "data",
        "claude_dir": root / ".claude",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)

