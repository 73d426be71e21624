"""Install, update, remove, enable and disable plugins.

Every operation is a small state machine over three pieces of state: the
marketplace catalogs, the plugin directory under ``plugins/<name>``, and the
``[plugins.<name>]`` config entry. Nothing is persisted about an operation
in progress.

INVARIANT: Install commits the config entry last. A crash before that point
leaves at most an unregistered directory, which the next install of the
same name reclaims.
INVARIANT: ``update`` never deletes an installation whose plugin vanished
from its marketplace.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from todoctl.config.discovery import ConfigPaths
from todoctl.config.models import PluginEntry
from todoctl.config.store import ConfigStore
from todoctl.plugins.bundled import bundled_name
from todoctl.plugins.errors import PluginNotFoundError, PluginValidationError
from todoctl.plugins.marketplace import MarketplaceClient
from todoctl.plugins.models import (
    PLUGIN_MANIFEST,
    ExternalSource,
    InstalledPlugin,
    InstallResult,
    PluginManifest,
    UpdateResult,
)
from todoctl.plugins.sources import SourceResolver, validate_plugin_name

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"


class PluginInstaller:
    """Plugin lifecycle operations against config and the plugins directory."""

    def __init__(
        self,
        store: ConfigStore,
        paths: ConfigPaths,
        marketplace: MarketplaceClient,
        resolver: SourceResolver,
        *,
        bundled_dir: Path | None = None,
    ) -> None:
        self._store = store
        self._paths = paths
        self._marketplace = marketplace
        self._resolver = resolver
        self._bundled_dir = bundled_dir

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self, name: str, marketplace: str | None = None) -> InstallResult:
        """Install *name*, optionally from one specific *marketplace*.

        When several marketplaces list the same name and none is given, the
        first in priority order wins (official first, then config order).
        """
        validate_plugin_name(name)
        if name in self._store.load().plugins:
            msg = f"Plugin {name!r} is already installed. Run `todoctl plugin remove {name}` first."
            raise PluginValidationError(msg, code="ALREADY_INSTALLED", name=name)

        discovered = self._marketplace.discover_plugins()
        if marketplace is not None:
            discovered = [p for p in discovered if p.marketplace == marketplace]
        candidates = [p for p in discovered if p.name == name]
        if not candidates:
            where = f" in marketplace {marketplace!r}" if marketplace else ""
            raise PluginNotFoundError(
                f"Plugin {name!r} not found{where}.",
                alternatives=[p.name for p in discovered],
            )

        warnings: list[str] = []
        chosen = candidates[0]
        if len(candidates) > 1:
            others = ", ".join(c.marketplace for c in candidates[1:])
            msg = (
                f"Plugin {name!r} is listed by several marketplaces; using "
                f"{chosen.marketplace!r} (also in: {others}). "
                f"Use {name}@<marketplace> to choose."
            )
            logger.warning(msg)
            warnings.append(msg)

        target_dir = self._paths.plugin_dir(name)
        if target_dir.exists():
            logger.warning("Reclaiming orphaned plugin directory %s", target_dir)
            shutil.rmtree(target_dir)
        self._paths.plugins_dir.mkdir(parents=True, exist_ok=True)

        registration = self._marketplace.get_marketplace(chosen.marketplace)
        try:
            warnings += self._resolver.materialize(
                chosen.source, target_dir, base_dir=self._marketplace.root_for(registration)
            )
        except Exception:
            shutil.rmtree(target_dir, ignore_errors=True)
            raise

        manifest, manifest_warning = _read_manifest(target_dir)
        if manifest_warning:
            warnings.append(manifest_warning)
        version = _resolved_version(chosen.version, manifest)

        with self._store.edit() as config:
            config.plugins[name] = PluginEntry(
                source=f"{name}@{chosen.marketplace}", version=version, enabled=True
            )
        logger.debug("Installed %s %s from %s", name, version, chosen.marketplace)

        return InstallResult(
            name=name,
            version=version,
            marketplace=chosen.marketplace,
            description=chosen.description or (manifest.description if manifest else None),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, name: str) -> UpdateResult:
        """Re-sync *name* from its marketplace, or from the package if bundled.

        Non-fatal outcomes (unknown marketplace, fetch failure, plugin no
        longer listed) come back as ``updated=False`` with a message.
        """
        validate_plugin_name(name)
        plugins = self._store.load().plugins
        entry = plugins.get(name)
        if entry is None:
            raise PluginNotFoundError(
                f"Plugin {name!r} is not installed.", alternatives=list(plugins)
            )
        old_version = entry.version or UNKNOWN_VERSION

        bundled = bundled_name(entry.source)
        if bundled is not None:
            return self._update_bundled(name, bundled, old_version)

        marketplace_name = entry.marketplace
        if marketplace_name is None:
            return UpdateResult(
                name=name, updated=False, message="Cannot determine marketplace for plugin"
            )
        try:
            registration = self._marketplace.get_marketplace(marketplace_name)
        except PluginNotFoundError:
            return UpdateResult(
                name=name,
                updated=False,
                message=f"Marketplace {marketplace_name!r} not found",
            )

        # Fetching a VCS marketplace pulls its cache first.
        try:
            manifest = self._marketplace.fetch_manifest(registration)
        except Exception as exc:
            logger.warning("Could not fetch marketplace %s: %s", marketplace_name, exc)
            return UpdateResult(
                name=name,
                updated=False,
                message=f"Failed to fetch marketplace {marketplace_name!r}",
            )

        catalog = next((p for p in manifest.plugins if p.name == name), None)
        if catalog is None:
            return UpdateResult(
                name=name,
                updated=False,
                message=f"Plugin {name!r} is no longer listed in marketplace {marketplace_name!r}",
            )

        return self._sync_and_record(
            name,
            catalog.source,
            old_version,
            base_dir=self._marketplace.root_for(registration),
            listed_version=catalog.version,
        )

    def _update_bundled(self, name: str, bundled: str, old_version: str) -> UpdateResult:
        source_dir = self._bundled_dir / bundled if self._bundled_dir else None
        if source_dir is None or not (source_dir / PLUGIN_MANIFEST).is_file():
            return UpdateResult(
                name=name, updated=False, message="Plugin is no longer bundled with todoctl"
            )
        return self._sync_and_record(name, str(source_dir), old_version)

    def _sync_and_record(
        self,
        name: str,
        source: str | ExternalSource,
        old_version: str,
        *,
        base_dir: Path | None = None,
        listed_version: str | None = None,
    ) -> UpdateResult:
        target_dir = self._paths.plugin_dir(name)
        warnings = self._resolver.sync(source, target_dir, base_dir=base_dir)
        manifest, manifest_warning = _read_manifest(target_dir)
        if manifest_warning:
            warnings.append(manifest_warning)
        new_version = _resolved_version(listed_version, manifest)

        with self._store.edit() as config:
            if name in config.plugins:
                config.plugins[name].version = new_version

        updated = old_version != new_version
        return UpdateResult(
            name=name,
            updated=updated,
            old_version=old_version,
            new_version=new_version,
            message=(
                f"Updated from {old_version} to {new_version}"
                if updated
                else "Already at latest version"
            ),
            warnings=warnings,
        )

    def update_all(self) -> list[UpdateResult]:
        """Update every installed plugin; one failure never stops the batch."""
        results: list[UpdateResult] = []
        for name in list(self._store.load().plugins):
            try:
                results.append(self.update(name))
            except Exception as exc:
                logger.warning("Update of %s failed: %s", name, exc)
                results.append(UpdateResult(name=name, updated=False, message=str(exc)))
        return results

    # ------------------------------------------------------------------
    # Remove / enable / disable / list
    # ------------------------------------------------------------------

    def remove(self, name: str) -> bool:
        """Delete the directory and config entry. Returns whether either existed."""
        validate_plugin_name(name)
        target_dir = self._paths.plugin_dir(name)
        had_dir = target_dir.exists()
        if had_dir:
            shutil.rmtree(target_dir)
        with self._store.edit() as config:
            had_entry = config.plugins.pop(name, None) is not None
        return had_dir or had_entry

    def enable(self, name: str) -> None:
        self._set_enabled(name, True)

    def disable(self, name: str) -> None:
        self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> None:
        with self._store.edit() as config:
            entry = config.plugins.get(name)
            if entry is None:
                raise PluginNotFoundError(
                    f"Plugin {name!r} is not installed.", alternatives=list(config.plugins)
                )
            entry.enabled = enabled

    def list_installed(self) -> list[InstalledPlugin]:
        return [
            InstalledPlugin(
                name=name,
                source=entry.source,
                version=entry.version,
                enabled=entry.enabled,
                marketplace=entry.marketplace,
                bundled=bundled_name(entry.source) is not None,
                after=entry.after,
            )
            for name, entry in self._store.load().plugins.items()
        ]


def _read_manifest(plugin_dir: Path) -> tuple[PluginManifest | None, str | None]:
    try:
        return PluginManifest.read(plugin_dir), None
    except PluginValidationError as exc:
        return None, f"{exc.message}; the plugin will not load until this is fixed"


def _resolved_version(listed: str | None, manifest: PluginManifest | None) -> str:
    if listed:
        return listed
    if manifest is not None:
        return manifest.version
    return UNKNOWN_VERSION
