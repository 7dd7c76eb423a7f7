"""Nurse data models: Anomaly, SanityReport, RepairAction, RepairOutcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from coffee.core.errors import InconsistentState


class AnomalyKind(str, Enum):
    ORPHANED_PLUGIN = "orphaned_plugin"
    MISSING_ARTIFACT = "missing_artifact"
    MISSING_DIRECTIVE = "missing_directive"
    DUPLICATE_DIRECTIVE = "duplicate_directive"
    STALE_DIRECTIVE = "stale_directive"
    OUTDATED_DIRECTIVE = "outdated_directive"
    UNKNOWN_DIRECTIVE = "unknown_directive"
    MALFORMED_BLOCK = "malformed_block"
    MISSING_REPOSITORY = "missing_repository"
    MISSING_SUBPATH = "missing_subpath"


_DESCRIPTIONS = {
    AnomalyKind.ORPHANED_PLUGIN: "plugin `{}` comes from a remote that no longer exists",
    AnomalyKind.MISSING_ARTIFACT: "plugin `{}` has no runnable artifact",
    AnomalyKind.MISSING_DIRECTIVE: "plugin `{}` is enabled but not declared in the config",
    AnomalyKind.DUPLICATE_DIRECTIVE: "plugin `{}` is declared more than once in the config",
    AnomalyKind.STALE_DIRECTIVE: "plugin `{}` is disabled but still declared in the config",
    AnomalyKind.OUTDATED_DIRECTIVE: "config still declares an earlier artifact of plugin `{}`",
    AnomalyKind.UNKNOWN_DIRECTIVE: "config declares `{}`, which no installed plugin provides",
    AnomalyKind.MALFORMED_BLOCK: "the managed block of `{}` cannot be parsed",
    AnomalyKind.MISSING_REPOSITORY: "the local clone of remote `{}` is missing",
    AnomalyKind.MISSING_SUBPATH: "the clone of remote `{}` lacks an advertised plugin directory",
}


@dataclass(frozen=True)
class Anomaly:
    """One failing consistency check."""

    kind: AnomalyKind
    subject: str
    detail: str = ""

    def __str__(self) -> str:
        text = _DESCRIPTIONS[self.kind].format(self.subject)
        return f"{text} ({self.detail})" if self.detail else text


@dataclass
class SanityReport:
    anomalies: list[Anomaly] = field(default_factory=list)

    def is_sane(self) -> bool:
        return not self.anomalies

    def of_kind(self, *kinds: AnomalyKind) -> list[Anomaly]:
        return [a for a in self.anomalies if a.kind in kinds]

    def raise_for_anomalies(self) -> None:
        if self.anomalies:
            raise InconsistentState(self.anomalies[0])

    def __str__(self) -> str:
        if self.is_sane():
            return "coffee is sane"
        lines = [f"coffee found {len(self.anomalies)} problem(s):"]
        lines.extend(f"  - {a}" for a in self.anomalies)
        return "\n".join(lines)


@dataclass
class RepairAction:
    action: str  # e.g. "repository_restored", "directive_added"
    subject: str
    detail: str = ""


@dataclass
class RepairOutcome:
    actions: list[RepairAction] = field(default_factory=list)
    unresolved: list[Anomaly] = field(default_factory=list)
    report: SanityReport = field(default_factory=SanityReport)

    def is_sane(self) -> bool:
        return self.report.is_sane()
