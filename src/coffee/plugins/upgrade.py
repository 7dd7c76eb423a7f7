"""Upgrade pipeline: refresh remotes, rebuild plugins whose source moved."""

from __future__ import annotations

import logging

from coffee.core.errors import CoffeeError, OperationCancelled, UpgradeFailed
from coffee.core.sync import CancelToken, LockTable
from coffee.remotes.registry import RemoteRegistry

from .index import PluginIndex
from .install import InstallPipeline
from .models import UpgradeOutcome, UpgradeStatus

logger = logging.getLogger(__name__)


class UpgradePipeline:
    """Per-plugin failures are isolated; the batch always runs to the end."""

    def __init__(
        self,
        registry: RemoteRegistry,
        index: PluginIndex,
        installer: InstallPipeline,
        locks: LockTable,
    ):
        self.registry = registry
        self.index = index
        self.installer = installer
        self.locks = locks

    def run(
        self,
        remote: str | None = None,
        verbose: bool = False,
        token: CancelToken | None = None,
    ) -> UpgradeOutcome:
        token = token or CancelToken()
        if remote is not None:
            self.registry.get(remote)
            targets = [remote]
        else:
            targets = self.registry.names()

        outcome = UpgradeOutcome(status=UpgradeStatus.UP_TO_DATE, remote=remote)
        changed = False
        for name in targets:
            token.check(f"refreshing {name}")
            try:
                with self.locks.commit:
                    diff = self.registry.refresh(name)
            except CoffeeError as e:
                if remote is not None:
                    raise
                logger.warning("refresh of %s failed: %s", name, e)
                outcome.failures[f"@{name}"] = UpgradeFailed(f"@{name}", e)
                continue
            changed = changed or not diff.is_empty()

            current = self.registry.get(name)
            if remote is not None:
                outcome.commit, outcome.date = current.commit, current.commit_date

            for plugin in self.index.from_remote(name):
                descriptor = current.find(plugin.name)
                if descriptor is None:
                    logger.warning("%s is no longer advertised by %s", plugin.name, name)
                    outcome.failures[plugin.name] = UpgradeFailed(
                        plugin.name, f"no longer advertised by `{name}`"
                    )
                    continue
                if descriptor.resolved_version == plugin.resolved_commit_or_version:
                    continue
                changed = True
                try:
                    self.installer.reinstall(plugin, descriptor, verbose, token)
                except OperationCancelled:
                    raise
                except CoffeeError as e:
                    logger.warning("upgrade of %s failed: %s", plugin.name, e)
                    outcome.failures[plugin.name] = UpgradeFailed(plugin.name, e)
                else:
                    outcome.updated.append(plugin.name)

        outcome.status = UpgradeStatus.UPDATED if changed else UpgradeStatus.UP_TO_DATE
        return outcome
