"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, config.toml only contains overrides.
Sections owned by other parts of the host (``[defaults]``, ``[ui]``, ...) are
carried through untouched so a read-modify-write never drops them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

OFFICIAL_MARKETPLACE = "todoctl-official"
OFFICIAL_MARKETPLACE_SOURCE = "github:todoctl/todoctl-plugins"

# Keys of a [plugins.<name>] table that belong to the host, not the plugin.
RESERVED_PLUGIN_KEYS = frozenset({"source", "version", "enabled", "after"})


class AuthConfig(BaseModel):
    """[auth] section."""

    model_config = {"frozen": True}

    api_token: str | None = None


class PluginSystemConfig(BaseModel):
    """[plugin_system] section.

    ``command_timeout`` bounds every git/pip/uv subprocess; ``None`` waits
    forever, matching the historical behaviour.
    """

    model_config = {"frozen": True}

    official_source: str = OFFICIAL_MARKETPLACE_SOURCE
    command_timeout: float | None = None
    http_timeout: float = 30.0


class PluginEntry(BaseModel):
    """[plugins.<name>] table.

    Extra keys are plugin-specific settings handed to the plugin as
    ``ctx.config``.
    """

    model_config = {"extra": "allow"}

    source: str = ""
    version: str | None = None
    enabled: bool = True
    after: str | None = None

    @property
    def marketplace(self) -> str | None:
        """Marketplace half of a ``name@marketplace`` source, if any."""
        name, sep, marketplace = self.source.rpartition("@")
        if not sep or not name or not marketplace:
            return None
        return marketplace

    def plugin_config(self) -> dict[str, Any]:
        """Plugin-specific keys, without the host-owned ones."""
        return {k: v for k, v in (self.model_extra or {}).items() if k not in RESERVED_PLUGIN_KEYS}


class MarketplaceEntry(BaseModel):
    """[marketplaces.<name>] table."""

    source: str
    auto_update: bool = True


class TodoConfig(BaseModel):
    """Root of config.toml as seen by the plugin subsystem."""

    model_config = {"extra": "allow"}

    auth: AuthConfig = Field(default_factory=AuthConfig)
    plugin_system: PluginSystemConfig = Field(default_factory=PluginSystemConfig)
    plugins: dict[str, PluginEntry] = Field(default_factory=dict)
    marketplaces: dict[str, MarketplaceEntry] = Field(default_factory=dict)
