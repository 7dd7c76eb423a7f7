"""Remote data models: Remote, PluginDescriptor, Language, ManifestDiff."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


class Language(str, Enum):
    PYPIP = "pypip"
    PYPOETRY = "pypoetry"
    GO = "go"
    RUST = "rust"
    JAVASCRIPT = "javascript"
    JAVA = "java"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> Language:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class PluginDescriptor:
    """A plugin as advertised by a remote's manifest."""

    name: str
    repository_subpath: str = "."
    language_hint: Language = Language.UNKNOWN
    readme: str | None = None
    version: str = ""
    main: str = ""  # entry point, relative to the plugin directory
    install_script: str = ""
    commit: str = ""  # last commit touching repository_subpath
    tipping: dict[str, str] = field(default_factory=dict)

    @property
    def resolved_version(self) -> str:
        return self.commit or self.version

    def to_dict(self) -> dict:
        data = asdict(self)
        data["language_hint"] = self.language_hint.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> PluginDescriptor:
        return cls(
            name=data["name"],
            repository_subpath=data.get("repository_subpath", "."),
            language_hint=Language.parse(data.get("language_hint")),
            readme=data.get("readme"),
            version=data.get("version", ""),
            main=data.get("main", ""),
            install_script=data.get("install_script", ""),
            commit=data.get("commit", ""),
            tipping=dict(data.get("tipping") or {}),
        )


@dataclass
class Remote:
    """An operator-registered git repository advertising plugins."""

    local_name: str
    url: str
    manifest: list[PluginDescriptor] = field(default_factory=list)
    last_synced: str = ""
    commit: str = ""
    commit_date: str = ""

    def find(self, name: str) -> PluginDescriptor | None:
        for descriptor in self.manifest:
            if descriptor.name == name:
                return descriptor
        return None

    def to_dict(self) -> dict:
        return {
            "local_name": self.local_name,
            "url": self.url,
            "manifest": [d.to_dict() for d in self.manifest],
            "last_synced": self.last_synced,
            "commit": self.commit,
            "commit_date": self.commit_date,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Remote:
        return cls(
            local_name=data["local_name"],
            url=data.get("url", ""),
            manifest=[PluginDescriptor.from_dict(d) for d in data.get("manifest", [])],
            last_synced=data.get("last_synced", ""),
            commit=data.get("commit", ""),
            commit_date=data.get("commit_date", ""),
        )


@dataclass
class ManifestDiff:
    """Plugin names added, removed or changed by a manifest refresh."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    @classmethod
    def between(cls, old: list[PluginDescriptor], new: list[PluginDescriptor]) -> ManifestDiff:
        before = {d.name: d for d in old}
        after = {d.name: d for d in new}
        return cls(
            added=[n for n in after if n not in before],
            removed=[n for n in before if n not in after],
            changed=[n for n in after if n in before and after[n] != before[n]],
        )
