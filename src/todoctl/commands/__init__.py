"""Subcommand modules for todoctl.

Provides register_commands() which uses deferred imports to keep
``todoctl --help`` fast. Plugin-contributed commands are added later, by
the root group, only when they are asked for.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the built-in command groups on the root CLI group."""
    from todoctl.commands.plugin import plugin

    cli.add_command(plugin)
