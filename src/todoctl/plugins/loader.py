"""Plugin loading: config entries -> imported modules -> registered extensions.

Enabled ``[plugins.<name>]`` entries are loaded one at a time in declaration
order, reordered so that a plugin with ``after = "<other>"`` loads after
``<other>`` when both are present. For each plugin the loader reads
``plugin.json``, imports the entry module, registers its ``@hookimpl``
object with pluggy, builds its :class:`~todoctl.plugins.context.PluginContext`
and then calls, in order: ``on_load``, ``register``, ``register_commands``
(CLI mode only) and ``on_ready``.

INVARIANT: One plugin's failure never stops the others from loading.
Everything the failing plugin registered (hooks, extensions, commands) is
rolled back.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

import pluggy

from todoctl.config.discovery import ConfigPaths
from todoctl.config.models import PluginEntry
from todoctl.plugins.context import LoadMode, PluginContext, UiControls, create_plugin_context
from todoctl.plugins.errors import PluginError, PluginValidationError
from todoctl.plugins.extensions import PluginRegistries, Registries
from todoctl.plugins.hookspecs import PROJECT_NAME, PluginHookSpec
from todoctl.plugins.models import PluginManifest
from todoctl.plugins.sources import DEPS_DIRNAME, validate_plugin_name
from todoctl.plugins.storage import Storage

if TYPE_CHECKING:
    import click

    from todoctl.api.types import TodoApi

logger = logging.getLogger(__name__)

PLUGIN_MODULE_PREFIX = "todoctl_plugin_"

PluginEntries = Sequence[tuple[str, PluginEntry]]


def order_entries(entries: PluginEntries) -> list[tuple[str, PluginEntry]]:
    """Stable reorder honouring ``after`` hints.

    A hint naming a plugin that is not in *entries* is ignored. If the hints
    form a cycle, all of them are ignored and declaration order is kept.
    """
    by_name = dict(entries)
    after: dict[str, str] = {}
    for name, entry in entries:
        if not entry.after or entry.after == name:
            continue
        if entry.after not in by_name:
            logger.debug("Ignoring load-after hint %s -> %s: not loaded", name, entry.after)
            continue
        after[name] = entry.after

    for start in after:
        chain = [start]
        node = after.get(start)
        while node is not None:
            if node in chain:
                logger.warning(
                    "Cyclic load-after hints (%s); using declaration order",
                    " -> ".join([*chain, node]),
                )
                return list(entries)
            chain.append(node)
            node = after.get(node)

    ordered: list[tuple[str, PluginEntry]] = []
    placed: set[str] = set()

    def place(name: str) -> None:
        if name in placed:
            return
        if name in after:
            place(after[name])
        placed.add(name)
        ordered.append((name, by_name[name]))

    for name, _entry in entries:
        place(name)
    return ordered


def _has_hook_impls(obj: object) -> bool:
    """Whether *obj* carries any ``@hookimpl`` callables.

    Pluggy's ``HookimplMarker("todoctl")`` sets a ``todoctl_impl`` attribute
    on decorated functions.
    """
    for name in dir(obj):
        if name.startswith("_"):
            continue
        member = getattr(obj, name, None)
        if callable(member) and getattr(member, f"{PROJECT_NAME}_impl", None):
            return True
    return False


def _call_hook(pm: pluggy.PluginManager, plugin: object, hook_name: str, **kwargs: Any) -> Any:
    """Invoke *hook_name* on *plugin* alone."""
    others = [p for p in pm.get_plugins() if p is not plugin]
    caller = pm.subset_hook_caller(hook_name, remove_plugins=others)
    return caller(**kwargs)


@dataclass
class LoadedPlugin:
    name: str
    manifest: PluginManifest
    plugin: object
    context: PluginContext
    commands: list[str] = field(default_factory=list)


class LoadedPlugins:
    """Plugins loaded into this process, in load order."""

    def __init__(self, registries: Registries, pm: pluggy.PluginManager) -> None:
        self.registries = registries
        self._pm = pm
        self.plugins: list[LoadedPlugin] = []
        self.failed: dict[str, str] = {}

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.plugins]

    def context_for(self, name: str) -> PluginContext | None:
        for loaded in self.plugins:
            if loaded.name == name:
                return loaded.context
        return None

    def owner_of(self, kind: str, ident: str) -> str | None:
        """Plugin that registered *ident* in the *kind* registry, if any."""
        return self.registries.owner_of(kind, ident)

    def context_of(self, kind: str, ident: str) -> PluginContext | None:
        """Context of the plugin that registered *ident*, for dispatching its callbacks."""
        owner = self.owner_of(kind, ident)
        return self.context_for(owner) if owner else None

    def unload(self) -> None:
        """Run ``on_unload`` in reverse load order and release every plugin."""
        for loaded in reversed(self.plugins):
            try:
                _call_hook(self._pm, loaded.plugin, "on_unload")
            except Exception:
                logger.warning("Error unloading plugin %s", loaded.name, exc_info=True)
            self.registries.remove_all_for_plugin(loaded.name)
            self._pm.unregister(loaded.plugin)
            loaded.context.storage.close()
        self.plugins.clear()


class PluginLoader:
    """Load enabled plugins into a shared set of :class:`Registries`."""

    def __init__(
        self,
        paths: ConfigPaths,
        registries: Registries,
        api: TodoApi,
        *,
        mode: LoadMode = LoadMode.CLI,
        ui: UiControls | None = None,
        storage_factory: Callable[[Path], Storage] | None = None,
    ) -> None:
        self._paths = paths
        self._registries = registries
        self._api = api
        self._mode = mode
        self._ui = ui
        self._storage_factory = storage_factory
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(PluginHookSpec)

    def load(
        self,
        plugins: Mapping[str, PluginEntry],
        *,
        cli: click.Group | None = None,
    ) -> LoadedPlugins:
        """Load every enabled entry of *plugins*. Failures are logged, never raised."""
        loaded = LoadedPlugins(self._registries, self._pm)
        enabled = [(name, entry) for name, entry in plugins.items() if entry.enabled]
        for name, entry in order_entries(enabled):
            plugin_dir = self._paths.plugin_dir(name)
            try:
                validate_plugin_name(name)
                if not plugin_dir.is_dir():
                    logger.warning("Directory not found for plugin %s, skipping", name)
                    loaded.failed[name] = "directory not found"
                    continue
                loaded.plugins.append(self._load_one(name, entry, plugin_dir, cli))
            except Exception as exc:
                logger.warning("Failed to load plugin %s: %s", name, exc, exc_info=True)
                loaded.failed[name] = str(exc)
        return loaded

    # ------------------------------------------------------------------
    # Single plugin
    # ------------------------------------------------------------------

    def _load_one(
        self,
        name: str,
        entry: PluginEntry,
        plugin_dir: Path,
        cli: click.Group | None,
    ) -> LoadedPlugin:
        manifest = PluginManifest.read(plugin_dir)
        module = self._import(name, plugin_dir, manifest.main)
        plugin = self._entry_object(module)
        ctx = create_plugin_context(
            name,
            plugin_dir=plugin_dir,
            api=self._api,
            hooks=self._registries.hooks,
            config=entry.plugin_config(),
            mode=self._mode,
            ui=self._ui,
            storage=self._storage_factory(plugin_dir) if self._storage_factory else None,
        )
        try:
            self._pm.register(plugin, name=name)
        except Exception:
            ctx.storage.close()
            raise

        commands_before = set(cli.commands) if cli is not None else set()
        try:
            _call_hook(self._pm, plugin, "on_load", ctx=ctx)
            _call_hook(
                self._pm, plugin, "register", registries=PluginRegistries(name, self._registries)
            )
            if self._mode is LoadMode.CLI and cli is not None:
                _call_hook(self._pm, plugin, "register_commands", cli=cli, ctx=ctx)
        except Exception:
            removed = self._registries.remove_all_for_plugin(name)
            if cli is not None:
                for command in set(cli.commands) - commands_before:
                    cli.commands.pop(command, None)
            self._pm.unregister(plugin)
            ctx.storage.close()
            logger.debug("Rolled back %d registrations of %s", removed, name)
            raise

        commands = sorted(set(cli.commands) - commands_before) if cli is not None else []
        try:
            _call_hook(self._pm, plugin, "on_ready", ctx=ctx)
        except Exception:
            logger.warning("on_ready failed for plugin %s", name, exc_info=True)

        logger.debug("Loaded plugin %s %s", name, manifest.version)
        return LoadedPlugin(
            name=name, manifest=manifest, plugin=plugin, context=ctx, commands=commands
        )

    @staticmethod
    def _import(name: str, plugin_dir: Path, main: str) -> ModuleType:
        """Import the entry module named by ``plugin.json``'s ``main``.

        ``main`` is either a ``.py`` path inside the plugin directory or a
        dotted module name importable from ``.deps``.
        """
        for path in (plugin_dir / DEPS_DIRNAME, plugin_dir):
            if path.is_dir() and str(path) not in sys.path:
                sys.path.insert(0, str(path))

        if not main.endswith(".py"):
            return importlib.import_module(main)

        root = plugin_dir.resolve()
        module_path = (plugin_dir / main).resolve()
        if not module_path.is_relative_to(root):
            msg = f"{name}: entry module {main!r} is outside the plugin directory"
            raise PluginValidationError(msg, code="INVALID_MANIFEST")
        if not module_path.is_file():
            msg = f"{name}: entry module {main!r} not found"
            raise PluginValidationError(msg, code="INVALID_MANIFEST")

        module_name = f"{PLUGIN_MODULE_PREFIX}{name.replace('-', '_')}"
        spec = importlib.util.spec_from_file_location(module_name, module_path)
        if spec is None or spec.loader is None:
            msg = f"{name}: could not create module spec for {module_path}"
            raise PluginError(msg)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module

    @staticmethod
    def _entry_object(module: ModuleType) -> object:
        """First class defined in *module* with ``@hookimpl`` methods, else the module."""
        for obj in vars(module).values():
            if not inspect.isclass(obj) or obj.__module__ != module.__name__:
                continue
            if _has_hook_impls(obj):
                return obj()
        if _has_hook_impls(module):
            return module
        msg = f"{module.__name__} defines no @hookimpl entry points"
        raise PluginValidationError(msg, code="NO_ENTRY_POINTS")
