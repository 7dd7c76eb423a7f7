"""Enable/disable state machine coupling the plugin index to the lightning config."""

from __future__ import annotations

import logging

from coffee.core.errors import ConfigPatchFailed
from coffee.core.sync import LockTable

from .index import PluginIndex
from .install import ConfProvider, require_conf
from .models import InstalledPlugin

logger = logging.getLogger(__name__)


class ToggleService:
    def __init__(self, index: PluginIndex, conf: ConfProvider, locks: LockTable):
        self.index = index
        self.conf = conf
        self.locks = locks

    def enable(self, name: str) -> InstalledPlugin:
        return self._set(name, True)

    def disable(self, name: str) -> InstalledPlugin:
        return self._set(name, False)

    def _set(self, name: str, enabled: bool) -> InstalledPlugin:
        plugin = self.index.get(name)
        if plugin.enabled == enabled:
            logger.debug("%s is already %s", name, "enabled" if enabled else "disabled")
            return plugin
        with self.locks.plugin(name), self.locks.commit:
            plugin.enabled = enabled
            self.index.update(plugin)
            try:
                require_conf(self.conf).set_directive(plugin.artifact_path, enabled)
            except ConfigPatchFailed:
                logger.warning("config patch for %s failed, restoring its state", name)
                plugin.enabled = not enabled
                self.index.update(plugin)
                raise
        logger.info("%s %s", "enabled" if enabled else "disabled", name)
        return plugin
