"""NurseService: verify and repair registry/index/filesystem/config consistency.

The plugin index is the source of truth: repair rebuilds trees and config
directives from it, and drops entries it cannot trace back to a known remote.
Directives left behind inside a plugin's own tree are removed; directives nobody
can account for are reported, never adopted or deleted. A managed block that
cannot be parsed is reported and left to the operator.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path

from coffee.core.errors import CoffeeError, ConfigPatchFailed
from coffee.core.sync import LockTable
from coffee.plugins.build import artifact_ok
from coffee.plugins.index import PluginIndex
from coffee.plugins.install import ConfProvider, InstallPipeline
from coffee.remotes.registry import RemoteRegistry

from .report import Anomaly, AnomalyKind, RepairAction, RepairOutcome, SanityReport

logger = logging.getLogger(__name__)


class NurseService:
    def __init__(
        self,
        registry: RemoteRegistry,
        index: PluginIndex,
        installer: InstallPipeline,
        conf: ConfProvider,
        locks: LockTable,
    ):
        self.registry = registry
        self.index = index
        self.installer = installer
        self.conf = conf
        self.locks = locks

    # ── checks ──────────────────────────────────────────────────────

    def _check_remotes(self) -> list[Anomaly]:
        found = []
        for remote in self.registry.list():
            clone = self.registry.clone_path(remote.local_name)
            if not clone.is_dir():
                found.append(Anomaly(AnomalyKind.MISSING_REPOSITORY, remote.local_name))
                continue
            for descriptor in remote.manifest:
                subpath = descriptor.repository_subpath
                if subpath not in ("", ".") and not (clone / subpath).is_dir():
                    found.append(Anomaly(AnomalyKind.MISSING_SUBPATH, remote.local_name, subpath))
        return found

    def _check_plugins(self) -> list[Anomaly]:
        found = []
        for plugin in self.index.list():
            if plugin.origin_remote not in self.registry:
                found.append(
                    Anomaly(AnomalyKind.ORPHANED_PLUGIN, plugin.name, plugin.origin_remote)
                )
            if not artifact_ok(plugin.artifact_path, plugin.install_mode):
                found.append(
                    Anomaly(AnomalyKind.MISSING_ARTIFACT, plugin.name, str(plugin.artifact_path))
                )
        return found

    def _owner_of(self, path: str) -> str | None:
        """Indexed plugin whose install tree contains *path*."""
        for plugin in self.index.list():
            tree = self.installer.plugin_dir(plugin.origin_remote, plugin.name)
            if Path(path).is_relative_to(tree):
                return plugin.name
        return None

    def _check_config(self) -> list[Anomaly]:
        patcher = self.conf()
        if patcher is None:
            return []
        try:
            counts = Counter(patcher.directives())
        except ConfigPatchFailed as e:
            return [Anomaly(AnomalyKind.MALFORMED_BLOCK, str(patcher.path), str(e))]
        found = []
        known = set()
        for plugin in self.index.list():
            path = str(plugin.artifact_path)
            known.add(path)
            n = counts.get(path, 0)
            if plugin.enabled and n == 0:
                found.append(Anomaly(AnomalyKind.MISSING_DIRECTIVE, plugin.name))
            elif plugin.enabled and n > 1:
                found.append(Anomaly(AnomalyKind.DUPLICATE_DIRECTIVE, plugin.name, f"{n} lines"))
            elif not plugin.enabled and n > 0:
                found.append(Anomaly(AnomalyKind.STALE_DIRECTIVE, plugin.name))
        for path in counts:
            if path in known:
                continue
            owner = self._owner_of(path)
            if owner is not None:
                found.append(Anomaly(AnomalyKind.OUTDATED_DIRECTIVE, owner, path))
            else:
                found.append(Anomaly(AnomalyKind.UNKNOWN_DIRECTIVE, path))
        return found

    def verify(self) -> SanityReport:
        """Read-only: the set of failing checks."""
        report = SanityReport(
            self._check_remotes() + self._check_plugins() + self._check_config()
        )
        logger.debug("nurse verify: %d anomalies", len(report.anomalies))
        return report

    # ── repair ──────────────────────────────────────────────────────

    def _restore_remotes(self, report: SanityReport, actions: list[RepairAction]) -> None:
        seen: set[str] = set()
        for anomaly in report.of_kind(AnomalyKind.MISSING_REPOSITORY, AnomalyKind.MISSING_SUBPATH):
            name = anomaly.subject
            if name in seen:
                continue
            seen.add(name)
            try:
                with self.locks.commit:
                    diff = self.registry.reclone(name)
            except CoffeeError as e:
                logger.warning("could not restore the clone of %s: %s", name, e)
                continue
            detail = f"{len(diff.removed)} plugin(s) no longer advertised" if diff.removed else ""
            actions.append(RepairAction("repository_restored", name, detail))

    def _drop_orphans(self, report: SanityReport, actions: list[RepairAction]) -> None:
        for anomaly in report.of_kind(AnomalyKind.ORPHANED_PLUGIN):
            if anomaly.subject not in self.index:
                continue
            try:
                self.installer.remove(anomaly.subject)
            except CoffeeError as e:
                logger.warning("could not drop %s: %s", anomaly.subject, e)
                continue
            actions.append(RepairAction("plugin_dropped", anomaly.subject, anomaly.detail))

    def _rebuild_artifacts(self, report: SanityReport, actions: list[RepairAction]) -> None:
        for anomaly in report.of_kind(AnomalyKind.MISSING_ARTIFACT):
            plugin = self.index.find(anomaly.subject)
            if plugin is None or plugin.origin_remote not in self.registry:
                continue
            descriptor = self.registry.get(plugin.origin_remote).find(plugin.name)
            if descriptor is None:
                logger.warning("%s is no longer advertised, cannot rebuild it", plugin.name)
                continue
            try:
                self.installer.reinstall(plugin, descriptor)
            except CoffeeError as e:
                logger.warning("could not rebuild %s: %s", plugin.name, e)
                continue
            actions.append(RepairAction("artifact_rebuilt", plugin.name))

    def _sync_directives(self, actions: list[RepairAction]) -> None:
        report = SanityReport(self._check_config())
        drift = report.of_kind(
            AnomalyKind.MISSING_DIRECTIVE,
            AnomalyKind.DUPLICATE_DIRECTIVE,
            AnomalyKind.STALE_DIRECTIVE,
            AnomalyKind.OUTDATED_DIRECTIVE,
        )
        if not drift:
            return
        patcher = self.conf()
        if patcher is None:
            return
        with self.locks.commit:
            for anomaly in drift:
                if anomaly.kind == AnomalyKind.OUTDATED_DIRECTIVE:
                    patcher.disable(anomaly.detail)
                    actions.append(
                        RepairAction("directive_removed", anomaly.subject, anomaly.detail)
                    )
                    continue
                plugin = self.index.get(anomaly.subject)
                patcher.set_directive(plugin.artifact_path, plugin.enabled)
                action = {
                    AnomalyKind.MISSING_DIRECTIVE: "directive_added",
                    AnomalyKind.DUPLICATE_DIRECTIVE: "directive_deduplicated",
                    AnomalyKind.STALE_DIRECTIVE: "directive_removed",
                }[anomaly.kind]
                actions.append(RepairAction(action, plugin.name, str(plugin.artifact_path)))

    def repair(self) -> RepairOutcome:
        """Verify, apply the minimal fix per anomaly, verify again."""
        before = self.verify()
        actions: list[RepairAction] = []
        if not before.is_sane():
            self._restore_remotes(before, actions)
            self._drop_orphans(before, actions)
            self._rebuild_artifacts(before, actions)
            self._sync_directives(actions)
        after = self.verify()
        for action in actions:
            logger.info("nurse: %s %s", action.action, action.subject)
        return RepairOutcome(actions=actions, unresolved=list(after.anomalies), report=after)
