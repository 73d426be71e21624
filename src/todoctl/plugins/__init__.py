"""Plugin subsystem: marketplaces, installation, loading and extension points.

INVARIANT: Plugin failures are warnings, never errors. A broken plugin must
not prevent the host or other plugins from running.
"""

from todoctl.plugins.extensions import PluginRegistries, Registries
from todoctl.plugins.hooks import HookEvent, HookRegistry, HookResult
from todoctl.plugins.hookspecs import hookimpl
from todoctl.plugins.loader import LoadedPlugins, PluginLoader

__all__ = [
    "HookEvent",
    "HookRegistry",
    "HookResult",
    "LoadedPlugins",
    "PluginLoader",
    "PluginRegistries",
    "Registries",
    "hookimpl",
]
