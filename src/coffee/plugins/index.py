"""PluginIndex: durable record of installed plugins."""

from __future__ import annotations

from pathlib import Path

from coffee.core.errors import AlreadyInstalled, PluginNotFound
from coffee.core.utils import read_json, write_json

from .models import InstalledPlugin


class PluginIndex:
    """Installed plugins keyed by their globally unique name (``plugins.json``)."""

    def __init__(self, path: Path):
        self.path = path
        self._plugins: dict[str, InstalledPlugin] = self._load()

    def _load(self) -> dict[str, InstalledPlugin]:
        data = read_json(self.path)
        plugins: dict[str, InstalledPlugin] = {}
        for entry in data.get("plugins", []):
            if isinstance(entry, dict) and entry.get("name"):
                plugin = InstalledPlugin.from_dict(entry)
                plugins[plugin.name] = plugin
        return plugins

    def _save(self) -> None:
        write_json(self.path, {"plugins": [p.to_dict() for p in self._plugins.values()]})

    def __contains__(self, name: str) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    def find(self, name: str) -> InstalledPlugin | None:
        return self._plugins.get(name)

    def get(self, name: str) -> InstalledPlugin:
        plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginNotFound(name, "the installed plugins")
        return plugin

    def list(self) -> list[InstalledPlugin]:
        return list(self._plugins.values())

    def from_remote(self, remote: str) -> list[InstalledPlugin]:
        return [p for p in self._plugins.values() if p.origin_remote == remote]

    def add(self, plugin: InstalledPlugin) -> None:
        if plugin.name in self._plugins:
            raise AlreadyInstalled(plugin.name)
        self._plugins[plugin.name] = plugin
        self._save()

    def update(self, plugin: InstalledPlugin) -> None:
        self.get(plugin.name)
        self._plugins[plugin.name] = plugin
        self._save()

    def remove(self, name: str) -> InstalledPlugin:
        plugin = self.get(name)
        del self._plugins[name]
        self._save()
        return plugin
