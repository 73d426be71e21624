"""Pluggy hook specifications for plugin entry points.

A plugin module exposes a class (or module-level functions) decorated with
:data:`hookimpl`. Every entry point is optional, and an implementation may
accept any subset of the declared arguments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    import click

    from todoctl.plugins.context import PluginContext
    from todoctl.plugins.extensions import PluginRegistries

PROJECT_NAME = "todoctl"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class PluginHookSpec:
    """Entry points invoked by :class:`~todoctl.plugins.loader.PluginLoader`, in order."""

    @hookspec
    def on_load(self, ctx: PluginContext) -> None:
        """Called first, with the plugin's capability context."""

    @hookspec
    def register(self, registries: PluginRegistries) -> None:
        """Register hooks, views, UI extensions and palette commands."""

    @hookspec
    def register_commands(self, cli: click.Group, ctx: PluginContext) -> None:
        """Add subcommands to the root command group (CLI mode only)."""

    @hookspec
    def on_ready(self, ctx: PluginContext) -> None:
        """Called once registration has completed."""

    @hookspec
    def on_unload(self) -> None:
        """Called at shutdown, in reverse load order."""
