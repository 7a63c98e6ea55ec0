"""Plugin system for dockins.

Plugins provide alternative drivers (for example one talking to the engine
API instead of the CLI). Built on pluggy.

Usage:
    from dockins.plugin import get_plugin_manager

    pm = get_plugin_manager()
    factories = pm.hook.dockins_driver_factory()
"""

from __future__ import annotations

import importlib

import pluggy
import structlog

from dockins.config import Settings, get_settings
from dockins.plugin.hookspecs import DockinsSpec, hookimpl

__all__ = [
    "get_plugin_manager",
    "hookimpl",
]

logger = structlog.get_logger(__name__)

# Static registry of built-in plugins.
# Each entry: (module_path, class_name, config_key)
# config_key is checked against [plugins.<key>].enabled in dockins.toml.
_BUILTIN_PLUGIN_SPECS: list[tuple[str, str, str]] = [
    ("dockins.drivers", "CliDriverPlugin", "cli-driver"),
]


def get_plugin_manager(settings: Settings | None = None) -> pluggy.PluginManager:
    """Create and configure the plugin manager.

    Registers the built-in plugins not disabled in config, then third-party
    plugins from the "dockins" entry point group.
    """
    s = settings if settings is not None else get_settings()
    pm = pluggy.PluginManager("dockins")
    pm.add_hookspecs(DockinsSpec)

    for module_path, class_name, config_key in _BUILTIN_PLUGIN_SPECS:
        plugin_cfg = s.plugins.get(config_key)
        if plugin_cfg is not None and not plugin_cfg.enabled:
            logger.info("Plugin disabled via config", plugin=config_key)
            continue
        mod = importlib.import_module(module_path)
        pm.register(getattr(mod, class_name)(), name=f"builtin-{config_key}")
        logger.debug("Registered built-in plugin", name=config_key)

    discovered = pm.load_setuptools_entrypoints("dockins")
    if discovered:
        logger.info("Discovered third-party plugins", count=discovered)

    # Entry points sometimes hand back the plugin class instead of an instance.
    for plugin in list(pm.get_plugins()):
        if isinstance(plugin, type):
            plugin_name = pm.get_name(plugin) or plugin.__name__
            pm.unregister(plugin=plugin)
            logger.warning("Unregistered invalid class-based plugin object", plugin=plugin_name)

    return pm
