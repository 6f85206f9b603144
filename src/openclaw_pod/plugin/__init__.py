"""Plugin system for openclaw-pod.

Plugins contribute container runtimes. Podman is registered as a built-in;
third-party runtimes are discovered from the ``openclaw_pod`` entry point
group.

Usage:
    from openclaw_pod.plugin import get_plugin_manager

    pm = get_plugin_manager()
    runtimes = pm.hook.openclaw_pod_container_runtime()
"""

from __future__ import annotations

import importlib

import pluggy

from openclaw_pod.logger import logger
from openclaw_pod.plugin.hookspecs import OpenClawPodSpec

__all__ = [
    "get_plugin_manager",
    "hookimpl",
]

hookimpl = pluggy.HookimplMarker("openclaw_pod")

# Each entry: (module_path, class_name, plugin_name)
_BUILTIN_PLUGIN_SPECS: list[tuple[str, str, str]] = [
    ("openclaw_pod.runtime.plugins.podman_runtime", "PodmanRuntimePlugin", "podman-runtime"),
]


def get_plugin_manager() -> pluggy.PluginManager:
    """Create the plugin manager with built-ins and entry-point plugins."""
    pm = pluggy.PluginManager("openclaw_pod")
    pm.add_hookspecs(OpenClawPodSpec)

    for module_path, class_name, plugin_name in _BUILTIN_PLUGIN_SPECS:
        mod = importlib.import_module(module_path)
        pm.register(getattr(mod, class_name)(), name=f"builtin-{plugin_name}")

    discovered = pm.load_setuptools_entrypoints("openclaw_pod")
    if discovered:
        logger.debug("Discovered third-party plugins", count=discovered)

    # Entry points occasionally resolve to the class rather than an instance.
    for plugin in list(pm.get_plugins()):
        if isinstance(plugin, type):
            plugin_name = pm.get_name(plugin) or plugin.__name__
            pm.unregister(plugin=plugin)
            logger.warning("Unregistered invalid class-based plugin object", plugin=plugin_name)

    return pm
