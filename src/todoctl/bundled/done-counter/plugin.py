"""Count completed tasks.

Every ``task.completed`` event bumps a counter kept in plugin storage. The
total shows up as a status bar item and through ``todoctl done-count``.
"""

from __future__ import annotations

import click

from todoctl.plugins import hookimpl
from todoctl.plugins.context import PluginContext
from todoctl.plugins.extensions import PluginRegistries, StatusBarItem
from todoctl.plugins.hooks import HookEvent, TaskCompleted

COUNTER_KEY = "completed"


class DoneCounter:
    def __init__(self) -> None:
        self.ctx: PluginContext | None = None

    def count(self) -> int:
        if self.ctx is None:
            return 0
        return int(self.ctx.storage.get(COUNTER_KEY, 0))

    def _on_completed(self, payload: TaskCompleted) -> None:
        if self.ctx is not None:
            self.ctx.storage.set(COUNTER_KEY, self.count() + 1)

    @hookimpl
    def on_load(self, ctx: PluginContext) -> None:
        self.ctx = ctx

    @hookimpl
    def register(self, registries: PluginRegistries) -> None:
        registries.on(HookEvent.TASK_COMPLETED, self._on_completed)
        registries.add_status_bar_item(
            StatusBarItem(id="done-counter", render=lambda _ctx: f"{self.count()} done")
        )

    @hookimpl
    def register_commands(self, cli: click.Group, ctx: PluginContext) -> None:
        @cli.command("done-count", help="Show how many tasks were completed.")
        def done_count() -> None:
            click.echo(self.count())
