"""Root CLI group for todoctl with global flags and command registration.

Built-in commands are registered eagerly. Enabled plugins are loaded only
when the root group is asked for a command it does not know, or for its
full command list (``--help``), so ``todoctl plugin ...`` keeps working
even when an installed plugin is broken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import click
from pydantic import ValidationError

from todoctl import __version__
from todoctl.api.client import RestTodoApi
from todoctl.commands import register_commands
from todoctl.commands._base import TodoGroup
from todoctl.commands._context import AppContext
from todoctl.config.logging import configure_logging
from todoctl.config.settings import TodoSettings
from todoctl.config.store import ConfigError
from todoctl.plugins.extensions import Registries
from todoctl.plugins.loader import LoadedPlugins, PluginLoader

logger = logging.getLogger(__name__)

_RUNTIME_KEY = "todoctl.plugins"


@dataclass
class PluginRuntime:
    """Plugins loaded for one CLI invocation and the API client they share."""

    loaded: LoadedPlugins
    api: RestTodoApi
    cli: TodoGroup

    def close(self) -> None:
        for loaded in self.loaded.plugins:
            for name in loaded.commands:
                self.cli.commands.pop(name, None)
                self.cli.plugin_commands.pop(name, None)
        try:
            self.loaded.unload()
        finally:
            self.api.close()


def _settings_from_params(params: dict[str, Any]) -> TodoSettings:
    return TodoSettings.from_cli(
        config_path=params.get("config_path"),
        json_output=bool(params.get("json_output")),
        quiet=bool(params.get("quiet")),
        verbose=bool(params.get("verbose")),
        log_json=bool(params.get("log_json")),
    )


class TodoCli(TodoGroup):
    """Root group that adds plugin commands on demand."""

    def _ensure_plugins(self, ctx: click.Context) -> None:
        root = ctx.find_root()
        if _RUNTIME_KEY in root.meta:
            return
        # An eager exit (--help) skips context cleanup, so commands from an
        # earlier invocation in this process may still be attached.
        for name in self.plugin_commands:
            self.commands.pop(name, None)
        self.plugin_commands.clear()
        # Resolving a subcommand happens before the root callback runs, so
        # settings are rebuilt from the parsed root params here.
        try:
            if isinstance(root.obj, AppContext):
                settings = root.obj.settings
            else:
                settings = _settings_from_params(root.params)
                configure_logging(verbose=settings.verbose, log_json=settings.log_json)
            entries = settings.config_store().load().plugins
        except (ConfigError, ValidationError) as exc:
            logger.warning("Not loading plugins: %s", exc)
            root.meta[_RUNTIME_KEY] = None
            return
        api = RestTodoApi(settings.auth.api_token)
        loader = PluginLoader(settings.paths, Registries(), api)
        runtime = PluginRuntime(loaded=loader.load(entries, cli=self), api=api, cli=self)
        for loaded in runtime.loaded.plugins:
            self.plugin_commands.update(dict.fromkeys(loaded.commands, loaded.name))
        root.meta[_RUNTIME_KEY] = runtime
        root.call_on_close(runtime.close)
        if runtime.loaded.failed:
            logger.debug("Plugins failed to load: %s", ", ".join(runtime.loaded.failed))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        command = super().get_command(ctx, cmd_name)
        if command is not None:
            return command
        self._ensure_plugins(ctx)
        return super().get_command(ctx, cmd_name)

    def list_commands(self, ctx: click.Context) -> list[str]:
        self._ensure_plugins(ctx)
        return super().list_commands(ctx)


@click.group(cls=TodoCli, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="todoctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """todoctl: task manager CLI."""
    try:
        settings = TodoSettings.from_cli(
            config_path=config_path,
            json_output=json_output,
            quiet=quiet,
            verbose=verbose,
            log_json=log_json,
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
