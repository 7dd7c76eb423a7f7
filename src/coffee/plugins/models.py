"""Plugin data models: InstalledPlugin, InstallMode and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from coffee.core.errors import UpgradeFailed


class InstallMode(str, Enum):
    DYNAMIC = "dynamic"  # run the source directly, no build step
    COMPILED = "compiled"  # build the source before activation


@dataclass
class InstalledPlugin:
    """A PluginIndex entry."""

    name: str
    origin_remote: str
    resolved_commit_or_version: str
    artifact_path: Path
    install_mode: InstallMode = InstallMode.COMPILED
    enabled: bool = True
    installed_at: str = ""
    tip_total_msat: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "origin_remote": self.origin_remote,
            "resolved_commit_or_version": self.resolved_commit_or_version,
            "artifact_path": str(self.artifact_path),
            "install_mode": self.install_mode.value,
            "enabled": self.enabled,
            "installed_at": self.installed_at,
            "tip_total_msat": self.tip_total_msat,
        }

    @classmethod
    def from_dict(cls, data: dict) -> InstalledPlugin:
        return cls(
            name=data["name"],
            origin_remote=data.get("origin_remote", ""),
            resolved_commit_or_version=data.get("resolved_commit_or_version", ""),
            artifact_path=Path(data.get("artifact_path", "")),
            install_mode=InstallMode(data.get("install_mode", InstallMode.COMPILED.value)),
            enabled=bool(data.get("enabled", True)),
            installed_at=data.get("installed_at", ""),
            tip_total_msat=int(data.get("tip_total_msat", 0)),
        )


class UpgradeStatus(str, Enum):
    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"


@dataclass
class UpgradeOutcome:
    status: UpgradeStatus
    remote: str | None = None
    commit: str = ""
    date: str = ""
    updated: list[str] = field(default_factory=list)
    failures: dict[str, UpgradeFailed] = field(default_factory=dict)

    @property
    def all_successful(self) -> bool:
        return not self.failures


@dataclass
class SearchResult:
    name: str
    remote: str
    repository_url: str


@dataclass
class ShowResult:
    name: str
    readme: str


@dataclass
class TipOutcome:
    for_plugin: str
    amount_msat: int
    destination: str
    status: str
    payment_hash: str = ""
    payment_preimage: str = ""
    tip_total_msat: int = 0
