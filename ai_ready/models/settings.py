"""
Host settings models.

The `plugins` section of the host settings file:

    {
      "plugins": {
        "enabled": ["lint@acme-tools"],
        "disabled": ["deploy@acme-tools"],
        "marketplaces": {
          "acme-tools": {
            "source": {"type": "directory", "path": "/abs/node_modules/acme"},
            "plugins": {"lint": {"version": "1.0.0", "source": "./plugins/lint"}}
          }
        }
      }
    }
"""

from typing import Literal

from pydantic import BaseModel, Field

PLUGIN_ENABLED = "enabled"
PLUGIN_DISABLED = "disabled"
PLUGIN_NOT_INSTALLED = "not-installed"


def plugin_key(plugin_name: str, marketplace_name: str) -> str:
    return f"{plugin_name}@{marketplace_name}"


class MarketplaceSource(BaseModel):
    type: Literal["directory"] = "directory"
    path: str


class PluginMetadata(BaseModel):
    version: str = "unknown"
    source: str


class MarketplaceEntry(BaseModel):
    source: MarketplaceSource
    plugins: dict[str, PluginMetadata] = Field(default_factory=dict)


class PluginSettings(BaseModel):
    enabled: list[str] = Field(default_factory=list)
    disabled: list[str] = Field(default_factory=list)
    marketplaces: dict[str, MarketplaceEntry] = Field(default_factory=dict)


class ChangeSummary(BaseModel):
    """Plugin names added to or refreshed in the enabled set."""

    added: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated)


class PluginState(BaseModel):
    name: str
    status: Literal["enabled", "disabled", "not-installed"]
    source: str
    version: str = "unknown"
    description: str = ""
    marketplace: str
