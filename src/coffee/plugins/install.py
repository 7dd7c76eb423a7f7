"""Install pipeline: resolve → fetch → build → register → activate.

Also hosts ``remove`` and ``reinstall``, the swap-in-place rebuild shared by
upgrade and nurse. Plugins live at ``plugins/<remote>/<name>``; every build
happens in a sibling staging directory so a failed build never touches the
installed tree.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from coffee.cln.conf import ConfigPatcher
from coffee.core.errors import (
    AlreadyInstalled,
    AmbiguousPlugin,
    CoffeeError,
    ConfigPatchFailed,
    FetchFailed,
    PluginNotFound,
)
from coffee.core.sync import CancelToken, LockTable
from coffee.core.utils import now_iso
from coffee.remotes.models import PluginDescriptor, Remote
from coffee.remotes.registry import RemoteRegistry

from .build import BuildStrategySelector
from .index import PluginIndex
from .models import InstalledPlugin, InstallMode

logger = logging.getLogger(__name__)

ConfProvider = Callable[[], "ConfigPatcher | None"]


def require_conf(conf: ConfProvider) -> ConfigPatcher:
    patcher = conf()
    if patcher is None:
        raise ConfigPatchFailed("no lightning config known; run `coffee setup <cln_root>` first")
    return patcher


def _rmtree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path, ignore_errors=True)


class InstallPipeline:
    def __init__(
        self,
        registry: RemoteRegistry,
        index: PluginIndex,
        selector: BuildStrategySelector,
        conf: ConfProvider,
        plugins_dir: Path,
        locks: LockTable,
    ):
        self.registry = registry
        self.index = index
        self.selector = selector
        self.conf = conf
        self.plugins_dir = plugins_dir
        self.locks = locks

    # ── paths ───────────────────────────────────────────────────────

    def plugin_dir(self, remote: str, name: str) -> Path:
        return self.plugins_dir / remote / name

    def _staging_dir(self, remote: str, name: str) -> Path:
        return self.plugins_dir / remote / f".{name}.staging"

    def _backup_dir(self, remote: str, name: str) -> Path:
        return self.plugins_dir / remote / f".{name}.old"

    # ── phases ──────────────────────────────────────────────────────

    def resolve(self, name: str, remote: str | None = None) -> tuple[Remote, PluginDescriptor]:
        """Find the single remote advertising *name*."""
        if remote is not None:
            descriptor = self.registry.get(remote).find(name)
            if descriptor is None:
                raise PluginNotFound(name, f"remote `{remote}`")
            return self.registry.get(remote), descriptor
        matches = self.registry.resolve(name)
        if not matches:
            raise PluginNotFound(name, "any remote")
        remotes = sorted({r.local_name for r, _ in matches})
        if len(remotes) > 1:
            raise AmbiguousPlugin(name, remotes)
        return matches[0]

    def _materialize(self, remote: Remote, descriptor: PluginDescriptor, dest: Path) -> None:
        clone = self.registry.clone_path(remote.local_name)
        if not clone.exists():
            logger.info("clone of %s is missing, fetching it", remote.local_name)
            self.registry.fetcher.clone(remote.url, clone)
        subpath = descriptor.repository_subpath
        source = clone if subpath in ("", ".") else clone / subpath
        if not source.is_dir():
            raise FetchFailed(f"`{subpath}` is missing from the clone of `{remote.local_name}`")
        try:
            shutil.copytree(source, dest, symlinks=True, ignore=shutil.ignore_patterns(".git"))
        except OSError as e:
            _rmtree(dest)
            raise FetchFailed(f"cannot copy {source}: {e}") from e

    def _stage(
        self,
        remote: Remote,
        descriptor: PluginDescriptor,
        mode: InstallMode,
        verbose: bool,
        token: CancelToken,
    ) -> Path:
        """Fetch and build into the staging directory; cleaned up on any failure."""
        staging = self._staging_dir(remote.local_name, descriptor.name)
        _rmtree(staging)
        token.check("fetch")
        logger.debug("materializing %s into %s", descriptor.name, staging)
        self._materialize(remote, descriptor, staging)
        try:
            token.check("build")
            self.selector.prepare(staging, descriptor, mode, verbose)
            token.check("register")
        except BaseException:
            _rmtree(staging)
            raise
        return staging

    # ── operations ──────────────────────────────────────────────────

    def run(
        self,
        name: str,
        verbose: bool = False,
        dynamic: bool = False,
        remote: str | None = None,
        token: CancelToken | None = None,
    ) -> InstalledPlugin:
        token = token or CancelToken()
        if name in self.index:
            raise AlreadyInstalled(name)
        origin, descriptor = self.resolve(name, remote)
        mode = InstallMode.DYNAMIC if dynamic else InstallMode.COMPILED
        logger.info("installing %s from %s (%s)", name, origin.local_name, mode.value)

        with self.locks.plugin(name):
            staging = self._stage(origin, descriptor, mode, verbose, token)
            final = self.plugin_dir(origin.local_name, name)
            with self.locks.commit:
                if name in self.index:
                    _rmtree(staging)
                    raise AlreadyInstalled(name)
                _rmtree(final)
                staging.rename(final)
                plugin = InstalledPlugin(
                    name=name,
                    origin_remote=origin.local_name,
                    resolved_commit_or_version=descriptor.resolved_version,
                    artifact_path=final / descriptor.main,
                    install_mode=mode,
                    enabled=True,
                    installed_at=now_iso(),
                )
                self.index.add(plugin)
                try:
                    require_conf(self.conf).enable(plugin.artifact_path)
                except ConfigPatchFailed:
                    logger.warning("activation of %s failed, rolling back", name)
                    self.index.remove(name)
                    _rmtree(final)
                    raise
        logger.info("installed %s at %s", name, plugin.artifact_path)
        return plugin

    def remove(self, name: str) -> InstalledPlugin:
        """Deactivate, unregister, then delete the plugin tree."""
        plugin = self.index.get(name)
        with self.locks.plugin(name), self.locks.commit:
            patcher = self.conf()
            if patcher is not None:
                patcher.disable(plugin.artifact_path)
            self.index.remove(name)
            _rmtree(self.plugin_dir(plugin.origin_remote, name))
        logger.info("removed %s", name)
        return plugin

    def reinstall(
        self,
        plugin: InstalledPlugin,
        descriptor: PluginDescriptor,
        verbose: bool = False,
        token: CancelToken | None = None,
    ) -> InstalledPlugin:
        """Rebuild *plugin* from *descriptor* and swap it into place.

        On any failure the previous tree, index entry and directive are kept.
        """
        token = token or CancelToken()
        origin = self.registry.get(plugin.origin_remote)
        with self.locks.plugin(plugin.name):
            staging = self._stage(origin, descriptor, plugin.install_mode, verbose, token)
            final = self.plugin_dir(origin.local_name, plugin.name)
            backup = self._backup_dir(origin.local_name, plugin.name)
            with self.locks.commit:
                _rmtree(backup)
                if final.exists():
                    final.rename(backup)
                staging.rename(final)

                old_artifact = plugin.artifact_path
                old_version = plugin.resolved_commit_or_version
                new_artifact = final / descriptor.main
                try:
                    plugin.resolved_commit_or_version = descriptor.resolved_version
                    plugin.artifact_path = new_artifact
                    self.index.update(plugin)
                    if plugin.enabled and new_artifact != old_artifact:
                        require_conf(self.conf).replace(old_artifact, new_artifact)
                except (CoffeeError, OSError):
                    logger.warning("swap of %s failed, restoring the previous build", plugin.name)
                    plugin.resolved_commit_or_version = old_version
                    plugin.artifact_path = old_artifact
                    self.index.update(plugin)
                    _rmtree(final)
                    if backup.exists():
                        backup.rename(final)
                    raise
                _rmtree(backup)
        logger.info("rebuilt %s at %s", plugin.name, plugin.resolved_commit_or_version[:12])
        return plugin
