"""Human-readable rendering of plugin and marketplace results.

``plugin list``, ``plugin discover``, ``plugin update`` and ``marketplace list``
get tables or one line per item; any other op prints its data as
``key: value`` lines. Everything is drawn on a buffered console and
returned as a string.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from todoctl.output.console import (
    create_console,
    get_output,
    style_for_enabled,
    style_for_update,
)

if TYPE_CHECKING:
    from rich.console import Console

    from todoctl.services.result import ServiceResult


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Text for *result*; colour codes only appear when stdout is a terminal."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """One line per listed name, or a single OK/ERROR line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    # For listings, return names only
    items = result.data.get("plugins") or result.data.get("marketplaces")
    if items and isinstance(items, list):
        return "\n".join(str(item["name"]) for item in items if item.get("name"))

    return f"OK: {result.op}"


# -- helpers --


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK status line."""
    label = Text("OK", style="status.ok")
    op = Text(f"  {result.op}", style="status.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="status.key")
    if key == "name":
        v = Text(str(value), style="plugin.name")
    elif key == "source":
        v = Text(str(value), style="plugin.source")
    elif key.endswith("version"):
        v = Text(str(value), style="plugin.version")
    elif isinstance(value, (dict, list)):
        v = Text(_json.dumps(value, separators=(",", ":")))
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _enabled_cell(enabled: bool) -> Text:
    return Text("enabled" if enabled else "disabled", style=style_for_enabled(enabled))


def _origin_cell(plugin: dict[str, Any]) -> Text:
    if plugin.get("bundled"):
        return Text("(bundled)", style="plugin.bundled")
    return Text(str(plugin.get("marketplace") or ""))


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="status.error")
    op = Text(f"  {result.op}", style="status.op")
    console.print(label, op, Text(": "), msg, sep="")

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# -- per-op renderers --


def _render_plugin_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render installed plugins as a table."""
    plugins = result.data.get("plugins", [])
    if not plugins:
        console.print("No plugins installed.")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Name", style="plugin.name", no_wrap=True)
    table.add_column("Version", style="plugin.version")
    table.add_column("Status")
    table.add_column("Marketplace")
    if verbose:
        table.add_column("Source", style="plugin.source")
        table.add_column("After", style="plugin.after")

    for plugin in plugins:
        row: list[str | Text] = [
            str(plugin.get("name", "")),
            str(plugin.get("version") or ""),
            _enabled_cell(bool(plugin.get("enabled", True))),
            _origin_cell(plugin),
        ]
        if verbose:
            row.append(str(plugin.get("source", "")))
            row.append(str(plugin.get("after") or ""))
        table.add_row(*row)
    console.print(table)


def _render_discover(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render marketplace catalog entries with their install state."""
    plugins = result.data.get("plugins", [])
    if not plugins:
        console.print("No plugins available.")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Name", style="plugin.name", no_wrap=True)
    table.add_column("Version", style="plugin.version")
    table.add_column("Marketplace")
    table.add_column("Installed")
    table.add_column("Description")
    if verbose:
        table.add_column("Source", style="plugin.source")

    for plugin in plugins:
        if plugin.get("installed"):
            state = _enabled_cell(bool(plugin.get("enabled")))
        else:
            state = Text("-", style="plugin.absent")
        row: list[str | Text] = [
            str(plugin.get("name", "")),
            str(plugin.get("version") or ""),
            str(plugin.get("marketplace", "")),
            state,
            str(plugin.get("description") or ""),
        ]
        if verbose:
            source = plugin.get("source", "")
            row.append(source if isinstance(source, str) else _json.dumps(source))
        table.add_row(*row)
    console.print(table)


def _render_install(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a completed install."""
    _status_line(console, result)
    for key in ("name", "version", "marketplace", "description"):
        if result.data.get(key):
            _field(console, key, result.data[key])


def _render_update(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render one line per plugin considered for update."""
    _status_line(console, result)
    results = result.data.get("results", [])
    if not results:
        console.print("  No plugins installed.")
        return
    for item in results:
        updated = bool(item.get("updated"))
        marker = Text("updated" if updated else "skipped", style=style_for_update(updated))
        line = Text(f"  {item.get('name', '')}: ", style="plugin.name")
        console.print(line, marker, Text(f"  {item.get('message', '')}"), sep="")
        if verbose and item.get("old_version") != item.get("new_version"):
            _field(console, "old_version", item.get("old_version"))
            _field(console, "new_version", item.get("new_version"))


def _render_marketplace_list(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    """Render registered marketplaces, official first."""
    marketplaces = result.data.get("marketplaces", [])
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Name", style="plugin.name", no_wrap=True)
    table.add_column("Source", style="plugin.source")
    table.add_column("Auto-update")

    for marketplace in marketplaces:
        name = Text(str(marketplace.get("name", "")))
        if marketplace.get("official"):
            name.append(" (official)", style="marketplace.official")
        table.add_row(
            name,
            str(marketplace.get("source", "")),
            "yes" if marketplace.get("auto_update", True) else "no",
        )
    console.print(table)


def _render_refresh(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    refreshed = result.data.get("refreshed", [])
    _field(console, "refreshed", ", ".join(refreshed) if refreshed else "(none)")


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Status line followed by every data key."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


# -- dispatch --

_OP_RENDERERS: dict[str, Any] = {
    # Plugins
    "plugin_list": _render_plugin_list,
    "plugin_discover": _render_discover,
    "plugin_install": _render_install,
    "plugin_update": _render_update,
    "plugin_remove": _render_generic,
    "plugin_enable": _render_generic,
    "plugin_disable": _render_generic,
    # Marketplaces
    "marketplace_list": _render_marketplace_list,
    "marketplace_add": _render_generic,
    "marketplace_remove": _render_generic,
    "marketplace_refresh": _render_refresh,
}
