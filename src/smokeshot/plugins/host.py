"""Plugin host - loads plugins and manages their lifecycle."""

from __future__ import annotations

import importlib
import logging

from smokeshot.core.exceptions import PluginError
from smokeshot.plugins.base import Plugin, PluginContext, PluginInfo

logger = logging.getLogger(__name__)


class PluginHost:
    """Manages plugin lifecycle: loading, starting, stopping."""

    def __init__(self, context: PluginContext | None = None):
        self.context = context or PluginContext()
        self._plugins: dict[str, _PluginEntry] = {}

    async def load_from_entry_point(self, entry_point: str) -> Plugin:
        """Load a plugin from 'module:ClassName' format."""
        if ":" not in entry_point:
            raise PluginError(f"Invalid plugin entry point {entry_point!r}", code=7001)
        module_path, class_name = entry_point.rsplit(":", 1)
        try:
            module = importlib.import_module(module_path)
            plugin_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise PluginError(f"Failed to load plugin {entry_point}: {e}", code=7002)

        if not (isinstance(plugin_class, type) and issubclass(plugin_class, Plugin)):
            raise PluginError(f"{entry_point} is not a Plugin subclass", code=7003)
        return await self._register(plugin_class())

    async def _register(self, plugin: Plugin) -> Plugin:
        info = plugin.info()
        await plugin.on_init(self.context)
        await plugin.on_start()
        self._plugins[info.id] = _PluginEntry(plugin=plugin, info=info, state="running")
        logger.info("Plugin loaded: %s v%s", info.name, info.version)
        return plugin

    async def unload(self, plugin_id: str) -> None:
        entry = self._plugins.pop(plugin_id, None)
        if entry:
            await entry.plugin.on_stop()
            await entry.plugin.on_destroy()
            logger.info("Plugin unloaded: %s", plugin_id)

    async def unload_all(self) -> None:
        for plugin_id in list(self._plugins.keys()):
            await self.unload(plugin_id)

    def get_plugin(self, plugin_id: str) -> Plugin | None:
        entry = self._plugins.get(plugin_id)
        return entry.plugin if entry else None

    def list_plugins(self) -> list[PluginInfo]:
        return [e.info for e in self._plugins.values()]


class _PluginEntry:
    def __init__(self, plugin: Plugin, info: PluginInfo, state: str = "loaded"):
        self.plugin = plugin
        self.info = info
        self.state = state
