"""
Module name resolver: canonical AMD module id for a transpiled asset.

Plugin assets are named ``discourse/plugins/<plugin>/<path>``; core assets use
the logical path with ember-cli's ``app/`` and ``addon/`` segments removed.
"""

import logging
import os
import re
import threading
from collections.abc import Iterator
from typing import NamedTuple

from js_processor.core.config import settings

_log = logging.getLogger(__name__)

PLUGIN_MODULE_PREFIX = "discourse/plugins"
PLUGIN_MANIFEST = "plugin.rb"


class Plugin(NamedTuple):
    name: str
    path: str  # absolute path of the plugin manifest (…/plugins/<dir>/plugin.rb)


class PluginRegistry:
    """Registered plugins, looked up by manifest path."""

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._lock = threading.Lock()

    def register(self, name: str, path: str) -> Plugin:
        plugin = Plugin(name=name, path=path)
        with self._lock:
            self._plugins[name] = plugin
        _log.debug("Registered plugin %s at %s", name, path)
        return plugin

    def find_by_path(self, path: str) -> Plugin | None:
        with self._lock:
            plugins = list(self._plugins.values())
        for plugin in plugins:
            if plugin.path == path:
                return plugin
        return None

    def clear(self) -> None:
        with self._lock:
            self._plugins.clear()

    def __iter__(self) -> Iterator[Plugin]:
        with self._lock:
            return iter(list(self._plugins.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._plugins)


def _plugin_root_re(app_root: str) -> re.Pattern[str]:
    root_base = os.path.basename(app_root.rstrip("/"))
    return re.compile(rf"(.*/{re.escape(root_base)}/plugins/[^/]+)/")


def ember_cli_name(logical_path: str) -> str:
    """Strip app/ and addon/ to replicate how ember-cli names modules."""
    return (
        logical_path.replace("app/", "")
        .replace("addon/", "")
        .replace("admin/addon", "admin")
    )


def module_name(
    root_path: str | None,
    logical_path: str | None,
    *,
    plugins: PluginRegistry | None = None,
    app_root: str | None = None,
) -> str | None:
    """
    Resolve the module id for *logical_path* found under *root_path*.

    If root_path lies inside ``<app_root>/plugins/<dir>/`` and a plugin with
    manifest ``<...>/plugins/<dir>/plugin.rb`` is registered, the id is
    ``discourse/plugins/<name>/<logical_path without javascripts/>``.
    Otherwise falls back to ember_cli_name(logical_path).
    """
    registry = plugins if plugins is not None else get_plugin_registry()
    root = app_root if app_root is not None else settings.APP_ROOT

    if root_path and logical_path is not None:
        m = _plugin_root_re(root).search(root_path)
        if m:
            plugin = registry.find_by_path(f"{m.group(1)}/{PLUGIN_MANIFEST}")
            if plugin:
                return f"{PLUGIN_MODULE_PREFIX}/{plugin.name}/{logical_path.replace('javascripts/', '', 1)}"

    if logical_path is None:
        return None
    return ember_cli_name(logical_path)


_plugin_registry = PluginRegistry()


def get_plugin_registry() -> PluginRegistry:
    return _plugin_registry
