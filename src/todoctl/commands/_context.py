"""Per-invocation state handed to every todoctl command via ``@click.pass_obj``."""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

import click

from todoctl.config.logging import configure_logging
from todoctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from todoctl.config.settings import TodoSettings
    from todoctl.services.plugins import PluginService
    from todoctl.services.result import ServiceResult


class AppContext:
    """Settings, output mode and the plugin service for one CLI run.

    Nothing under the config directory is touched until a command asks for
    :attr:`plugin_service`.
    """

    def __init__(self, settings: TodoSettings) -> None:
        self.settings = settings
        self.output = OutputSettings(
            json_output=settings.json_output,
            quiet=settings.quiet,
            verbose=settings.verbose,
        )
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @cached_property
    def plugin_service(self) -> PluginService:
        from todoctl.services.plugins import PluginService

        return PluginService(self.settings)

    def emit(self, result: ServiceResult) -> None:
        """Print *result* and exit 1 if it failed.

        Successful output goes to stdout and warnings to stderr, so piping
        ``--json`` or ``--quiet`` output stays clean. Failures go to stderr.
        """
        rendered = format_result(result, settings=self.output)
        if not result.ok:
            click.echo(rendered, err=True)
            raise SystemExit(1)
        click.echo(rendered)
        if self.output.json_output:
            return
        for warning in result.warnings:
            click.echo(f"WARNING: {warning}", err=True)
