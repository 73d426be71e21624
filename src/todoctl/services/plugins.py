"""PluginService: the ``plugin`` command group's operations as ServiceResults."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from todoctl.config.store import ConfigError
from todoctl.plugins.bundled import bundled_plugins_dir, setup_bundled_plugins
from todoctl.plugins.errors import PluginError, PluginValidationError
from todoctl.plugins.installer import PluginInstaller
from todoctl.plugins.marketplace import MarketplaceClient
from todoctl.plugins.sources import ProcessRunner, SourceResolver
from todoctl.services.result import ServiceResult

if TYPE_CHECKING:
    import httpx

    from todoctl.config.settings import TodoSettings

logger = logging.getLogger(__name__)


def parse_plugin_spec(spec: str) -> tuple[str, str | None]:
    """Split ``name[@marketplace]``."""
    if "@" not in spec:
        return spec, None
    name, marketplace = spec.rsplit("@", 1)
    if not marketplace:
        raise PluginValidationError(
            f"Missing marketplace name after '@' in {spec!r}.", code="MISSING_FIELD"
        )
    return name, marketplace


class PluginService:
    """Plugin and marketplace management for one config directory."""

    def __init__(
        self,
        settings: TodoSettings,
        *,
        runner: ProcessRunner | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        system = settings.plugin_system
        paths = settings.paths
        store = settings.config_store()
        runner = runner or ProcessRunner(timeout=system.command_timeout)
        self.marketplace = MarketplaceClient(
            store,
            paths,
            runner,
            official_source=system.official_source,
            http_timeout=system.http_timeout,
            transport=transport,
        )
        self._store = store
        self._paths = paths
        self._bundled_dir = bundled_plugins_dir()
        self._bundled_ready = False
        self.installer = PluginInstaller(
            store,
            paths,
            self.marketplace,
            SourceResolver(runner),
            bundled_dir=self._bundled_dir,
        )

    def _ensure_bundled(self) -> None:
        """Set up shipped plugins once, before the first operation."""
        if self._bundled_ready:
            return
        self._bundled_ready = True
        setup_bundled_plugins(self._store, self._paths, self._bundled_dir)

    def _guard(self, op: str, fn: Callable[[], ServiceResult]) -> ServiceResult:
        try:
            self._ensure_bundled()
            return fn()
        except PluginError as exc:
            return ServiceResult.failure(op, exc.code, exc.message, exc.detail)
        except ConfigError as exc:
            return ServiceResult.failure(op, "CONFIG_ERROR", str(exc))
        except OSError as exc:
            logger.debug("%s failed", op, exc_info=True)
            return ServiceResult.failure(op, "IO_ERROR", str(exc))

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    def list_plugins(self) -> ServiceResult:
        def run() -> ServiceResult:
            plugins = self.installer.list_installed()
            return ServiceResult.success(
                "plugin_list",
                {"plugins": [p.model_dump() for p in plugins], "count": len(plugins)},
            )

        return self._guard("plugin_list", run)

    def discover(self) -> ServiceResult:
        def run() -> ServiceResult:
            plugins = self.marketplace.discover_plugins()
            return ServiceResult.success(
                "plugin_discover",
                {"plugins": [p.model_dump(mode="json") for p in plugins], "count": len(plugins)},
            )

        return self._guard("plugin_discover", run)

    def install(self, spec: str) -> ServiceResult:
        def run() -> ServiceResult:
            name, marketplace = parse_plugin_spec(spec)
            result = self.installer.install(name, marketplace)
            return ServiceResult.success(
                "plugin_install", result.model_dump(exclude={"warnings"}), result.warnings
            )

        return self._guard("plugin_install", run)

    def remove(self, name: str) -> ServiceResult:
        def run() -> ServiceResult:
            removed = self.installer.remove(name)
            warnings = [] if removed else [f"Plugin {name!r} was not installed"]
            return ServiceResult.success(
                "plugin_remove", {"name": name, "removed": removed}, warnings
            )

        return self._guard("plugin_remove", run)

    def update(self, name: str | None = None) -> ServiceResult:
        def run() -> ServiceResult:
            results = [self.installer.update(name)] if name else self.installer.update_all()
            warnings = [w for r in results for w in r.warnings]
            return ServiceResult.success(
                "plugin_update",
                {
                    "results": [r.model_dump(exclude={"warnings"}) for r in results],
                    "updated": sum(r.updated for r in results),
                },
                warnings,
            )

        return self._guard("plugin_update", run)

    def enable(self, name: str) -> ServiceResult:
        def run() -> ServiceResult:
            self.installer.enable(name)
            return ServiceResult.success("plugin_enable", {"name": name, "enabled": True})

        return self._guard("plugin_enable", run)

    def disable(self, name: str) -> ServiceResult:
        def run() -> ServiceResult:
            self.installer.disable(name)
            return ServiceResult.success("plugin_disable", {"name": name, "enabled": False})

        return self._guard("plugin_disable", run)

    # ------------------------------------------------------------------
    # Marketplaces
    # ------------------------------------------------------------------

    def marketplace_list(self) -> ServiceResult:
        def run() -> ServiceResult:
            registrations = self.marketplace.list_marketplaces()
            return ServiceResult.success(
                "marketplace_list",
                {"marketplaces": [m.model_dump() for m in registrations]},
            )

        return self._guard("marketplace_list", run)

    def marketplace_add(self, source: str) -> ServiceResult:
        def run() -> ServiceResult:
            name = self.marketplace.add_marketplace(source)
            return ServiceResult.success("marketplace_add", {"name": name, "source": source})

        return self._guard("marketplace_add", run)

    def marketplace_remove(self, name: str) -> ServiceResult:
        def run() -> ServiceResult:
            self.marketplace.remove_marketplace(name)
            return ServiceResult.success("marketplace_remove", {"name": name})

        return self._guard("marketplace_remove", run)

    def marketplace_refresh(self, name: str | None = None) -> ServiceResult:
        def run() -> ServiceResult:
            refreshed = self.marketplace.refresh(name)
            return ServiceResult.success("marketplace_refresh", {"refreshed": refreshed})

        return self._guard("marketplace_refresh", run)
