"""Rich Console factory and the styles used by plugin and marketplace output.

Consoles render to a StringIO buffer, preserving the
``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich drops the colour codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

PLUGIN_THEME = Theme(
    {
        # status lines
        "status.ok": "bold green",
        "status.error": "bold red",
        "status.op": "bold cyan",
        "status.key": "dim",
        # plugin tables
        "plugin.name": "bold blue",
        "plugin.version": "magenta",
        "plugin.source": "dim",
        "plugin.after": "dim",
        "plugin.enabled": "green",
        "plugin.disabled": "yellow",
        "plugin.absent": "dim",
        "plugin.bundled": "italic cyan",
        # marketplaces
        "marketplace.official": "bold",
        # update outcomes
        "update.updated": "bold green",
        "update.skipped": "dim",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=PLUGIN_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    buffer = console.file
    if not isinstance(buffer, StringIO):
        msg = "console was not created by create_console()"
        raise TypeError(msg)
    return buffer.getvalue()


def style_for_enabled(enabled: bool) -> str:
    """Style for a plugin's enabled state."""
    return "plugin.enabled" if enabled else "plugin.disabled"


def style_for_update(updated: bool) -> str:
    """Style for one plugin's update outcome."""
    return "update.updated" if updated else "update.skipped"
