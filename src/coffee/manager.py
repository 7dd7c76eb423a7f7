"""CoffeeManager: the programmatic surface of every lifecycle operation."""

from __future__ import annotations

import logging
from pathlib import Path

from coffee.cln.conf import ConfigPatcher
from coffee.cln.rpc import LightningPayer, Payer
from coffee.core.config import Config
from coffee.core.errors import CoffeeError, PluginNotFound, RemoteInUse
from coffee.core.sync import CancelToken, LockTable
from coffee.nurse import NurseService, RepairOutcome, SanityReport
from coffee.plugins.build import Builder, BuildStrategySelector, ShellBuilder
from coffee.plugins.index import PluginIndex
from coffee.plugins.install import InstallPipeline
from coffee.plugins.models import (
    InstalledPlugin,
    SearchResult,
    ShowResult,
    TipOutcome,
    UpgradeOutcome,
)
from coffee.plugins.tip import TipService
from coffee.plugins.toggle import ToggleService
from coffee.plugins.upgrade import UpgradePipeline
from coffee.remotes.git import Fetcher, GitFetcher
from coffee.remotes.models import PluginDescriptor, Remote
from coffee.remotes.registry import RemoteRegistry

logger = logging.getLogger(__name__)


class CoffeeManager:
    """Wire the stores, collaborators and pipelines for one network."""

    def __init__(
        self,
        config: Config,
        fetcher: Fetcher | None = None,
        builder: Builder | None = None,
        payer: Payer | None = None,
    ):
        self.config = config
        self.locks = LockTable()
        self.registry = RemoteRegistry(
            config.remotes_path,
            config.repositories_dir,
            fetcher or GitFetcher(config.fetch_timeout),
        )
        self.index = PluginIndex(config.index_path)
        self.installer = InstallPipeline(
            self.registry,
            self.index,
            BuildStrategySelector(builder or ShellBuilder(config.build_timeout)),
            self._conf,
            config.plugins_dir,
            self.locks,
        )
        self.upgrader = UpgradePipeline(self.registry, self.index, self.installer, self.locks)
        self.toggles = ToggleService(self.index, self._conf, self.locks)
        self.nurse_service = NurseService(
            self.registry, self.index, self.installer, self._conf, self.locks
        )
        self._payer = payer

    def _conf(self) -> ConfigPatcher | None:
        path = self.config.cln_config_path
        return ConfigPatcher(path) if path is not None else None

    def _conf_path_for(self, root: Path) -> Path:
        return self.config.cln_conf or root / self.config.network / "config"

    def inventory(self) -> SanityReport | None:
        """Startup check: warn about anomalies, never fail on them."""
        if self.config.skip_verify:
            return None
        report = self.nurse_service.verify()
        if not report.is_sane():
            logger.warning("%s", report)
        return report

    # ── plugins ─────────────────────────────────────────────────────

    def install(
        self,
        name: str,
        verbose: bool = False,
        dynamic: bool = False,
        remote: str | None = None,
        token: CancelToken | None = None,
    ) -> InstalledPlugin:
        return self.installer.run(name, verbose, dynamic, remote=remote, token=token)

    def remove(self, name: str) -> InstalledPlugin:
        return self.installer.remove(name)

    def list(self) -> list[InstalledPlugin]:
        return self.index.list()

    def upgrade(
        self,
        remote: str | None = None,
        verbose: bool = False,
        token: CancelToken | None = None,
    ) -> UpgradeOutcome:
        return self.upgrader.run(remote, verbose, token)

    def enable(self, name: str) -> InstalledPlugin:
        return self.toggles.enable(name)

    def disable(self, name: str) -> InstalledPlugin:
        return self.toggles.disable(name)

    def tip(self, name: str, amount_msat: int) -> TipOutcome:
        payer = self._payer or LightningPayer(self.config.rpc_socket)
        return TipService(self.registry, self.index, payer, self.locks).tip(name, amount_msat)

    # ── remotes ─────────────────────────────────────────────────────

    def remote_add(self, name: str, url: str) -> Remote:
        with self.locks.commit:
            return self.registry.add(name, url)

    def remote_rm(self, name: str, force: bool = False) -> Remote:
        self.registry.get(name)
        dependents = [p.name for p in self.index.from_remote(name)]
        if dependents and not force:
            raise RemoteInUse(name, dependents)
        for plugin in dependents:
            logger.info("removing %s, installed from %s", plugin, name)
            self.installer.remove(plugin)
        with self.locks.commit:
            return self.registry.remove(name)

    def remote_list(self) -> list[Remote]:
        return self.registry.list()

    def remote_get(self, name: str) -> Remote:
        return self.registry.get(name)

    def remote_inspect(self, name: str) -> list[PluginDescriptor]:
        return self.registry.inspect(name)

    # ── read paths ──────────────────────────────────────────────────

    def search(self, name: str) -> SearchResult:
        """First remote, in registry order, advertising *name*."""
        matches = self.registry.resolve(name)
        if not matches:
            raise PluginNotFound(name, "any remote")
        remote, _ = matches[0]
        return SearchResult(name=name, remote=remote.local_name, repository_url=remote.url)

    def show(self, name: str) -> ShowResult:
        descriptor: PluginDescriptor | None = None
        installed = self.index.find(name)
        if installed is not None and installed.origin_remote in self.registry:
            descriptor = self.registry.get(installed.origin_remote).find(name)
        if descriptor is None:
            matches = self.registry.resolve(name)
            if not matches:
                raise PluginNotFound(name, "any remote")
            descriptor = matches[0][1]
        return ShowResult(name=name, readme=descriptor.readme or "")

    # ── lightning config ────────────────────────────────────────────

    def setup(self, cln_root: str | Path) -> Path:
        """Record the lightning root and create the managed block."""
        root = Path(cln_root).expanduser().resolve()
        if not root.is_dir():
            raise CoffeeError(f"{root} is not a directory")
        patcher = ConfigPatcher(self._conf_path_for(root))
        with self.locks.commit:
            enabled = [p.artifact_path for p in self.index.list() if p.enabled]
            patcher.ensure_block(enabled)
            self.config.record_cln_root(root)
        logger.info("managing plugins in %s", patcher.path)
        return patcher.path

    def teardown(self, cln_root: str | Path) -> Path:
        """Remove the managed block; operator content stays."""
        root = Path(cln_root).expanduser().resolve()
        path = self._conf_path_for(root)
        with self.locks.commit:
            ConfigPatcher(path).remove_block()
            if self.config.cln_root is not None and self.config.cln_root.resolve() == root:
                self.config.forget_cln_root()
        logger.info("removed the managed block from %s", path)
        return path

    # ── nurse ───────────────────────────────────────────────────────

    def nurse_verify(self) -> SanityReport:
        return self.nurse_service.verify()

    def nurse_repair(self) -> RepairOutcome:
        return self.nurse_service.repair()

    def nurse(self, verify: bool = False) -> SanityReport | RepairOutcome:
        return self.nurse_verify() if verify else self.nurse_repair()
