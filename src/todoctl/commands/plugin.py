"""Command group: plugin and marketplace management."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from todoctl.commands._base import TodoGroup

if TYPE_CHECKING:
    from todoctl.commands._context import AppContext


@click.group(
    cls=TodoGroup,
    examples="""\
  todoctl plugin discover
  todoctl plugin install pomodoro
  todoctl plugin install pomodoro@my-plugins
  todoctl plugin disable pomodoro
  todoctl plugin update""",
)
def plugin() -> None:
    """Install, update and manage plugins."""


@plugin.command("list", examples="todoctl --json plugin list")
@click.pass_obj
def plugin_list(app: AppContext) -> None:
    """List installed plugins."""
    app.emit(app.plugin_service.list_plugins())


@plugin.command("discover", examples="todoctl plugin discover")
@click.pass_obj
def plugin_discover(app: AppContext) -> None:
    """List plugins available from every registered marketplace."""
    app.emit(app.plugin_service.discover())


@plugin.command(
    "install",
    examples="""\
  todoctl plugin install pomodoro
  todoctl plugin install pomodoro@todoctl-official""",
)
@click.argument("spec", metavar="NAME[@MARKETPLACE]")
@click.pass_obj
def plugin_install(app: AppContext, spec: str) -> None:
    """Install a plugin, optionally from a specific marketplace."""
    app.emit(app.plugin_service.install(spec))


@plugin.command("remove", examples="todoctl plugin remove pomodoro")
@click.argument("name")
@click.pass_obj
def plugin_remove(app: AppContext, name: str) -> None:
    """Remove an installed plugin and its files."""
    app.emit(app.plugin_service.remove(name))


@plugin.command(
    "update",
    examples="""\
  todoctl plugin update
  todoctl plugin update pomodoro""",
)
@click.argument("name", required=False)
@click.option("--all", "update_all", is_flag=True, help="Update every installed plugin.")
@click.pass_obj
def plugin_update(app: AppContext, name: str | None, update_all: bool) -> None:
    """Update one plugin, or all of them when no name is given."""
    if name and update_all:
        raise click.UsageError("Pass either a plugin name or --all, not both.")
    app.emit(app.plugin_service.update(name))


@plugin.command("enable", examples="todoctl plugin enable pomodoro")
@click.argument("name")
@click.pass_obj
def plugin_enable(app: AppContext, name: str) -> None:
    """Enable an installed plugin."""
    app.emit(app.plugin_service.enable(name))


@plugin.command("disable", examples="todoctl plugin disable pomodoro")
@click.argument("name")
@click.pass_obj
def plugin_disable(app: AppContext, name: str) -> None:
    """Disable an installed plugin without removing it."""
    app.emit(app.plugin_service.disable(name))


# ── Marketplaces ──────────────────────────────────────────────────────


@plugin.group(
    "marketplace",
    examples="""\
  todoctl plugin marketplace list
  todoctl plugin marketplace add github:acme/todoctl-plugins
  todoctl plugin marketplace add https://example.com/marketplace.json
  todoctl plugin marketplace refresh""",
)
def marketplace() -> None:
    """Manage plugin marketplaces."""


@marketplace.command("list", examples="todoctl plugin marketplace list")
@click.pass_obj
def marketplace_list(app: AppContext) -> None:
    """List registered marketplaces, official first."""
    app.emit(app.plugin_service.marketplace_list())


@marketplace.command(
    "add",
    examples="""\
  todoctl plugin marketplace add github:acme/todoctl-plugins
  todoctl plugin marketplace add ~/src/my-marketplace""",
)
@click.argument("source")
@click.pass_obj
def marketplace_add(app: AppContext, source: str) -> None:
    """Register a marketplace by source (github:owner/repo, git URL, https URL or path)."""
    app.emit(app.plugin_service.marketplace_add(source))


@marketplace.command("remove", examples="todoctl plugin marketplace remove acme")
@click.argument("name")
@click.pass_obj
def marketplace_remove(app: AppContext, name: str) -> None:
    """Unregister a marketplace and delete its cache."""
    app.emit(app.plugin_service.marketplace_remove(name))


@marketplace.command(
    "refresh",
    examples="""\
  todoctl plugin marketplace refresh
  todoctl plugin marketplace refresh acme""",
)
@click.argument("name", required=False)
@click.pass_obj
def marketplace_refresh(app: AppContext, name: str | None) -> None:
    """Re-fetch one marketplace's catalog, or all of them."""
    app.emit(app.plugin_service.marketplace_refresh(name))
