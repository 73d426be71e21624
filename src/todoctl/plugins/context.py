"""Capability context handed to each plugin.

The context is the whole surface a plugin may touch: the hooked domain API,
its private storage, its plugin-specific config keys, a bound logger, and
(interactive mode only) UI controls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal, Protocol

from todoctl.api.types import TodoApi
from todoctl.config.logging import plugin_logger
from todoctl.plugins.api_proxy import HookedApi
from todoctl.plugins.hooks import HookRegistry
from todoctl.plugins.storage import PluginStorage, Storage

NotifyLevel = Literal["info", "success", "warning", "error"]


class LoadMode(StrEnum):
    CLI = "cli"
    INTERACTIVE = "interactive"


class UiControls(Protocol):
    """Controls the interactive UI exposes to plugins."""

    def set_status(self, message: str) -> None: ...
    def notify(self, message: str, level: NotifyLevel = "info") -> None: ...
    def navigate(self, view: str) -> None: ...
    def open_modal(self, modal_id: str) -> None: ...
    def refresh_tasks(self) -> None: ...


@dataclass
class PluginContext:
    name: str
    api: TodoApi
    storage: Storage
    plugin_dir: Path
    log: Any
    config: dict[str, Any] = field(default_factory=dict)
    ui: UiControls | None = None


def create_plugin_context(
    name: str,
    *,
    plugin_dir: Path,
    api: TodoApi,
    hooks: HookRegistry,
    config: dict[str, Any] | None = None,
    mode: LoadMode = LoadMode.CLI,
    ui: UiControls | None = None,
    storage: Storage | None = None,
) -> PluginContext:
    """Build the context for plugin *name*.

    The API is wrapped in a :class:`HookedApi` over *hooks*; storage
    defaults to the plugin's SQLite file. ``ui`` is dropped in CLI mode.
    """
    return PluginContext(
        name=name,
        api=HookedApi(api, hooks),
        storage=storage if storage is not None else PluginStorage.for_plugin_dir(plugin_dir),
        plugin_dir=plugin_dir,
        log=plugin_logger(name),
        config=dict(config or {}),
        ui=ui if mode is LoadMode.INTERACTIVE else None,
    )
