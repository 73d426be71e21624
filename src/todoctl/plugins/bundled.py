"""Plugins shipped inside the todoctl package.

Every directory with a ``plugin.json`` under ``todoctl/bundled/`` is a
plugin. The first time the plugin subsystem runs, each one that is not
installed yet is copied into ``plugins/<name>`` and registered as
``source = "bundled:<name>"`` with ``enabled = false``, so it shows up in
``todoctl plugin list`` and can be turned on with ``todoctl plugin enable``.

Removing a bundled plugin deletes its copy; it is set up again, disabled, on
the next run. Disable it instead to keep it off.
"""

from __future__ import annotations

import logging
import shutil
from importlib import resources
from pathlib import Path

from todoctl.config.discovery import ConfigPaths
from todoctl.config.models import PluginEntry
from todoctl.config.store import ConfigStore
from todoctl.plugins.errors import PluginValidationError
from todoctl.plugins.models import PLUGIN_MANIFEST, PluginManifest
from todoctl.plugins.sources import PLUGIN_NAME_RE

logger = logging.getLogger(__name__)

BUNDLED_PREFIX = "bundled:"
BUNDLED_DIRNAME = "bundled"


def bundled_plugins_dir() -> Path | None:
    """``todoctl/bundled`` when the package is installed as plain files."""
    root = resources.files("todoctl").joinpath(BUNDLED_DIRNAME)
    if isinstance(root, Path) and root.is_dir():
        return root
    return None


def bundled_name(source: str) -> str | None:
    """``bundled:<name>`` -> ``<name>``; ``None`` for any other source."""
    if not source.startswith(BUNDLED_PREFIX):
        return None
    name = source.removeprefix(BUNDLED_PREFIX)
    return name if PLUGIN_NAME_RE.fullmatch(name) else None


def iter_bundled(bundled_dir: Path) -> list[Path]:
    """Plugin directories under *bundled_dir*, sorted by name."""
    return sorted(
        path
        for path in bundled_dir.iterdir()
        if path.is_dir()
        and PLUGIN_NAME_RE.fullmatch(path.name)
        and (path / PLUGIN_MANIFEST).is_file()
    )


def setup_bundled_plugins(
    store: ConfigStore, paths: ConfigPaths, bundled_dir: Path | None
) -> list[str]:
    """Copy and register bundled plugins that are not installed yet.

    A plugin is skipped when its directory or its config entry already
    exists. Returns the names that were added.
    """
    if bundled_dir is None or not bundled_dir.is_dir():
        return []

    installed = store.load().plugins
    added: dict[str, str | None] = {}
    for source_dir in iter_bundled(bundled_dir):
        name = source_dir.name
        target_dir = paths.plugin_dir(name)
        if name in installed or target_dir.exists():
            continue
        try:
            paths.plugins_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(
                source_dir, target_dir, ignore=shutil.ignore_patterns("__pycache__")
            )
        except OSError as exc:
            logger.warning("Could not set up bundled plugin %s: %s", name, exc)
            shutil.rmtree(target_dir, ignore_errors=True)
            continue
        try:
            added[name] = PluginManifest.read(target_dir).version
        except PluginValidationError:
            added[name] = None

    if added:
        with store.edit() as config:
            for name, version in added.items():
                config.plugins.setdefault(
                    name,
                    PluginEntry(source=f"{BUNDLED_PREFIX}{name}", version=version, enabled=False),
                )
        logger.debug("Set up bundled plugins: %s", ", ".join(added))
    return list(added)
