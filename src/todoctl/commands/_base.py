"""Click base classes shared by built-in and plugin-contributed commands.

``examples=`` adds an eager ``--examples`` flag that prints usage examples
and exits, so ``--help`` stays short. Groups list commands contributed by
plugins under their own ``Plugin commands`` heading, tagged with the
plugin that added them.
"""

from __future__ import annotations

from typing import Any

import click


def _examples_option(examples: str) -> click.Option:
    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    return click.Option(
        ["--examples"],
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=show_examples,
        help="Show usage examples and exit.",
    )


class TodoCommand(click.Command):
    """Command accepting ``examples=``."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(_examples_option(examples))


class TodoGroup(click.Group):
    """Group accepting ``examples=``; nested commands and groups inherit both classes.

    ``plugin_commands`` maps a subcommand name to the plugin that registered
    it. Those subcommands are listed separately in ``--help``.
    """

    command_class = TodoCommand
    group_class = type

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        self.plugin_commands: dict[str, str] = {}
        if examples:
            self.params.append(_examples_option(examples))

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        builtin: list[tuple[str, str]] = []
        contributed: list[tuple[str, str]] = []
        for name in self.list_commands(ctx):
            command = self.get_command(ctx, name)
            if command is None or command.hidden:
                continue
            summary = command.get_short_help_str()
            owner = self.plugin_commands.get(name)
            if owner is None:
                builtin.append((name, summary))
            else:
                contributed.append((name, f"{summary} [{owner}]".lstrip()))

        if builtin:
            with formatter.section("Commands"):
                formatter.write_dl(builtin)
        if contributed:
            with formatter.section("Plugin commands"):
                formatter.write_dl(contributed)
