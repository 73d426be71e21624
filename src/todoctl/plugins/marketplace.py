"""Marketplace registration, manifest fetching and plugin discovery.

A marketplace is a catalog (``marketplace.json``) of installable plugins.
The official marketplace always exists, is always listed first, and can be
neither removed nor shadowed by a config entry of the same name.

Source kinds:
- ``github:user/repo`` or a URL ending in ``.git``: cloned into
  ``marketplace-cache/<name>`` on first use and pulled afterwards. A failed
  pull falls back to the cached copy.
- ``https://...``: the manifest is fetched directly.
- ``http://...``: always rejected.
- anything else: a local directory containing ``marketplace.json``.

INVARIANT: Marketplaces are fetched one at a time; no two fetches ever
write to the same cache directory concurrently.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from todoctl.config.discovery import ConfigPaths
from todoctl.config.models import (
    OFFICIAL_MARKETPLACE,
    OFFICIAL_MARKETPLACE_SOURCE,
    MarketplaceEntry,
)
from todoctl.config.store import ConfigStore
from todoctl.plugins.errors import (
    MarketplaceError,
    PluginError,
    PluginNotFoundError,
    PluginValidationError,
    SourceResolutionError,
)
from todoctl.plugins.models import (
    MARKETPLACE_MANIFEST,
    DiscoveredPlugin,
    MarketplaceManifest,
    MarketplaceRegistration,
)
from todoctl.plugins.sources import (
    GITHUB_PREFIX,
    PLUGIN_NAME_RE,
    ProcessRunner,
    github_clone_url,
)

logger = logging.getLogger(__name__)


def derive_marketplace_name(source: str) -> str:
    """Name a marketplace after its source.

    ``github:user/repo`` -> ``repo``; a URL -> its last path segment without
    ``.git``/``.json``; a path -> its last directory name.
    """
    if source.startswith(GITHUB_PREFIX):
        name = source.removeprefix(GITHUB_PREFIX).rstrip("/").rsplit("/", 1)[-1]
    elif "://" in source:
        segments = [s for s in urlparse(source).path.split("/") if s]
        name = segments[-1] if segments else urlparse(source).netloc
    else:
        name = Path(source).expanduser().resolve().name
    return name.removesuffix(".git").removesuffix(".json")


def is_vcs_marketplace(source: str) -> bool:
    return source.startswith(GITHUB_PREFIX) or (
        "://" in source and urlparse(source).path.endswith(".git")
    )


def _reject_insecure(source: str) -> None:
    if source.startswith("http://"):
        raise PluginValidationError(
            "HTTP marketplace sources are not supported for security. Use HTTPS.",
            code="INSECURE_SOURCE",
            source=source,
        )


class MarketplaceClient:
    """Registered marketplaces and the plugins they list."""

    def __init__(
        self,
        store: ConfigStore,
        paths: ConfigPaths,
        runner: ProcessRunner,
        *,
        official_source: str = OFFICIAL_MARKETPLACE_SOURCE,
        http_timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._store = store
        self._paths = paths
        self._runner = runner
        self._official_source = official_source
        self._http_timeout = http_timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def list_marketplaces(self) -> list[MarketplaceRegistration]:
        """The official marketplace, then user registrations in config order."""
        registrations = [
            MarketplaceRegistration(
                name=OFFICIAL_MARKETPLACE, source=self._official_source, official=True
            )
        ]
        for name, entry in self._store.load().marketplaces.items():
            if name == OFFICIAL_MARKETPLACE:
                logger.debug("Ignoring config entry shadowing the official marketplace")
                continue
            registrations.append(
                MarketplaceRegistration(
                    name=name, source=entry.source, auto_update=entry.auto_update
                )
            )
        return registrations

    def get_marketplace(self, name: str) -> MarketplaceRegistration:
        registrations = self.list_marketplaces()
        for registration in registrations:
            if registration.name == name:
                return registration
        raise PluginNotFoundError(
            f"Marketplace {name!r} is not registered.",
            alternatives=[r.name for r in registrations],
        )

    def add_marketplace(self, source: str) -> str:
        """Register *source* and return the derived marketplace name."""
        _reject_insecure(source)
        name = derive_marketplace_name(source)
        if name == OFFICIAL_MARKETPLACE:
            msg = f"Cannot add marketplace with reserved name {OFFICIAL_MARKETPLACE!r}."
            raise PluginValidationError(msg, code="RESERVED_NAME", name=name)
        if not PLUGIN_NAME_RE.fullmatch(name):
            msg = f"Cannot derive a valid marketplace name from {source!r} (got {name!r})."
            raise PluginValidationError(msg, code="INVALID_NAME", name=name)

        if not source.startswith(GITHUB_PREFIX) and "://" not in source:
            source = str(Path(source).expanduser().resolve())

        with self._store.edit() as config:
            existing = config.marketplaces.get(name)
            if existing is not None and existing.source != source:
                msg = (
                    f"Marketplace {name!r} is already registered from {existing.source}. "
                    f"Remove it first."
                )
                raise PluginValidationError(msg, code="ALREADY_REGISTERED", name=name)
            config.marketplaces[name] = MarketplaceEntry(source=source, auto_update=True)
        logger.debug("Registered marketplace %s -> %s", name, source)
        return name

    def remove_marketplace(self, name: str) -> None:
        if name == OFFICIAL_MARKETPLACE:
            msg = f"Cannot remove the official marketplace {OFFICIAL_MARKETPLACE!r}."
            raise PluginValidationError(msg, code="RESERVED_NAME", name=name)
        with self._store.edit() as config:
            if name not in config.marketplaces:
                raise PluginNotFoundError(
                    f"Marketplace {name!r} is not registered.",
                    alternatives=[OFFICIAL_MARKETPLACE, *config.marketplaces],
                )
            del config.marketplaces[name]
        cache_dir = self.cache_dir_for(name)
        if cache_dir.exists():
            shutil.rmtree(cache_dir)

    def cache_dir_for(self, name: str) -> Path:
        return self._paths.marketplace_cache_dir / name

    def root_for(self, marketplace: MarketplaceRegistration) -> Path | None:
        """Directory that relative catalog sources are resolved against."""
        if is_vcs_marketplace(marketplace.source):
            return self.cache_dir_for(marketplace.name)
        if "://" in marketplace.source:
            return None
        return Path(marketplace.source).expanduser()

    # ------------------------------------------------------------------
    # Manifests
    # ------------------------------------------------------------------

    def fetch_manifest(self, marketplace: MarketplaceRegistration) -> MarketplaceManifest:
        source = marketplace.source
        _reject_insecure(source)
        if is_vcs_marketplace(source):
            cache_dir = self._sync_cache(marketplace, strict=True)
            return self._read_manifest(cache_dir / MARKETPLACE_MANIFEST, marketplace.name)
        if source.startswith("https://"):
            return self._fetch_remote(source, marketplace.name)
        local = Path(source).expanduser() / MARKETPLACE_MANIFEST
        return self._read_manifest(local, marketplace.name)

    def refresh(self, name: str | None = None) -> list[str]:
        """Clone or pull VCS marketplace caches. Returns the names refreshed.

        Failures are logged and skipped; an unknown *name* raises.
        """
        targets = [self.get_marketplace(name)] if name else self.list_marketplaces()
        refreshed: list[str] = []
        for marketplace in targets:
            if not is_vcs_marketplace(marketplace.source):
                continue
            try:
                self._sync_cache(marketplace, strict=False)
            except (PluginError, OSError) as exc:
                logger.warning("Could not refresh marketplace %s: %s", marketplace.name, exc)
                continue
            refreshed.append(marketplace.name)
        return refreshed

    def discover_plugins(self) -> list[DiscoveredPlugin]:
        """Every plugin from every reachable marketplace, in priority order.

        A marketplace whose fetch fails for any reason is skipped with a warning.
        """
        installed = self._store.load().plugins
        discovered: list[DiscoveredPlugin] = []
        for marketplace in self.list_marketplaces():
            try:
                manifest = self.fetch_manifest(marketplace)
            except Exception as exc:
                logger.warning("Skipping marketplace %s: %s", marketplace.name, exc)
                continue
            for entry in manifest.plugins:
                config_entry = installed.get(entry.name)
                discovered.append(
                    DiscoveredPlugin.model_validate(
                        {
                            **entry.model_dump(exclude={"source"}),
                            "source": entry.source,
                            "marketplace": marketplace.name,
                            "installed": config_entry is not None,
                            "enabled": config_entry is not None and config_entry.enabled,
                        }
                    )
                )
        return discovered

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clone_url(self, source: str) -> str:
        return github_clone_url(source) if source.startswith(GITHUB_PREFIX) else source

    def _sync_cache(self, marketplace: MarketplaceRegistration, *, strict: bool) -> Path:
        """Clone on first use, pull otherwise. Pull failures always fall back to the cache."""
        cache_dir = self.cache_dir_for(marketplace.name)
        if (cache_dir / ".git").is_dir():
            try:
                self._runner.run("git", "-C", str(cache_dir), "pull")
            except SourceResolutionError as exc:
                logger.info("Using cached marketplace %s: %s", marketplace.name, exc)
            return cache_dir

        if cache_dir.exists():
            shutil.rmtree(cache_dir)
        cache_dir.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._runner.run(
                "git", "clone", "--", self._clone_url(marketplace.source), str(cache_dir)
            )
        except SourceResolutionError:
            if strict:
                raise
            logger.warning("Could not clone marketplace %s", marketplace.name)
        return cache_dir

    def _fetch_remote(self, url: str, name: str) -> MarketplaceManifest:
        try:
            with httpx.Client(
                timeout=self._http_timeout, transport=self._transport, follow_redirects=True
            ) as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            msg = f"Failed to fetch marketplace manifest from {url}: {exc}"
            raise SourceResolutionError(msg, url=url) from exc
        if response.is_error:
            msg = (
                f"Failed to fetch marketplace manifest from {url}: "
                f"HTTP {response.status_code} {response.reason_phrase}"
            )
            raise SourceResolutionError(msg, url=url, status_code=response.status_code)
        return self._parse_manifest(response.text, name)

    def _read_manifest(self, path: Path, name: str) -> MarketplaceManifest:
        if not path.is_file():
            msg = f"Marketplace {name!r} does not contain a {MARKETPLACE_MANIFEST} file."
            raise MarketplaceError(msg, path=str(path))
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Could not read {MARKETPLACE_MANIFEST} of marketplace {name!r}: {exc}"
            raise MarketplaceError(msg, path=str(path)) from exc
        return self._parse_manifest(raw, name)

    @staticmethod
    def _parse_manifest(raw: str, name: str) -> MarketplaceManifest:
        try:
            return MarketplaceManifest.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            msg = f"Marketplace {name!r} has a malformed {MARKETPLACE_MANIFEST}: {exc}"
            raise MarketplaceError(msg) from exc
