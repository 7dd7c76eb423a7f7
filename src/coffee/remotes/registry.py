"""RemoteRegistry: durable record of remotes and the manifests they advertise."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from coffee.core.errors import CoffeeError, DuplicateRemote, FetchFailed, RemoteNotFound
from coffee.core.utils import now_iso, read_json, write_json

from .git import Fetcher
from .manifest import scan_manifest
from .models import ManifestDiff, PluginDescriptor, Remote

logger = logging.getLogger(__name__)


def _check_name(name: str) -> None:
    if not name or name.startswith(".") or "/" in name or "\\" in name or "@" in name:
        raise CoffeeError(f"invalid remote name `{name}`")


class RemoteRegistry:
    """Remotes keyed by local name, persisted in ``remotes.json``.

    Registry order is insertion order; it is the order ``search`` walks.
    """

    def __init__(self, path: Path, repositories_dir: Path, fetcher: Fetcher):
        self.path = path
        self.repositories_dir = repositories_dir
        self.fetcher = fetcher
        self._remotes: dict[str, Remote] = self._load()

    # ── persistence ─────────────────────────────────────────────────

    def _load(self) -> dict[str, Remote]:
        data = read_json(self.path)
        remotes: dict[str, Remote] = {}
        for entry in data.get("remotes", []):
            if isinstance(entry, dict) and entry.get("local_name"):
                remote = Remote.from_dict(entry)
                remotes[remote.local_name] = remote
        return remotes

    def _save(self) -> None:
        write_json(self.path, {"remotes": [r.to_dict() for r in self._remotes.values()]})

    # ── queries ─────────────────────────────────────────────────────

    def clone_path(self, name: str) -> Path:
        return self.repositories_dir / name

    def __contains__(self, name: str) -> bool:
        return name in self._remotes

    def get(self, name: str) -> Remote:
        try:
            return self._remotes[name]
        except KeyError:
            raise RemoteNotFound(name) from None

    def list(self) -> list[Remote]:
        return list(self._remotes.values())

    def names(self) -> list[str]:
        return list(self._remotes)

    def inspect(self, name: str) -> list[PluginDescriptor]:
        return list(self.get(name).manifest)

    def resolve(self, plugin: str) -> list[tuple[Remote, PluginDescriptor]]:
        """Every (remote, descriptor) advertising *plugin*, in registry order."""
        matches = []
        for remote in self._remotes.values():
            descriptor = remote.find(plugin)
            if descriptor is not None:
                matches.append((remote, descriptor))
        return matches

    # ── mutations ───────────────────────────────────────────────────

    def _scan(self, dest: Path) -> tuple[list[PluginDescriptor], str, str]:
        try:
            manifest = scan_manifest(dest)
        except OSError as e:
            raise FetchFailed(f"cannot read {dest}: {e}") from e
        for descriptor in manifest:
            descriptor.commit = self.fetcher.last_commit(dest, descriptor.repository_subpath)
        commit, date = self.fetcher.head(dest)
        return manifest, commit, date

    def add(self, name: str, url: str) -> Remote:
        """Clone *url*, read its manifest, then persist the remote."""
        _check_name(name)
        if name in self._remotes:
            raise DuplicateRemote(name)
        dest = self.clone_path(name)
        if dest.exists():
            logger.warning("removing stale clone at %s", dest)
            shutil.rmtree(dest)
        logger.info("cloning remote %s from %s", name, url)
        self.fetcher.clone(url, dest)
        try:
            manifest, commit, date = self._scan(dest)
        except FetchFailed:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        remote = Remote(
            local_name=name,
            url=url,
            manifest=manifest,
            last_synced=now_iso(),
            commit=commit,
            commit_date=date,
        )
        self._remotes[name] = remote
        self._save()
        logger.info("remote %s advertises %d plugin(s)", name, len(manifest))
        return remote

    def remove(self, name: str) -> Remote:
        remote = self.get(name)
        del self._remotes[name]
        self._save()
        dest = self.clone_path(name)
        if dest.exists():
            shutil.rmtree(dest)
        return remote

    def refresh(self, name: str) -> ManifestDiff:
        """Pull the remote and replace its manifest. Idempotent."""
        remote = self.get(name)
        dest = self.clone_path(name)
        if dest.exists():
            self.fetcher.pull(dest)
        else:
            logger.info("clone of %s is missing, cloning again", name)
            self.fetcher.clone(remote.url, dest)
        manifest, commit, date = self._scan(dest)
        diff = ManifestDiff.between(remote.manifest, manifest)
        remote.manifest = manifest
        remote.commit = commit
        remote.commit_date = date
        remote.last_synced = now_iso()
        self._save()
        if not diff.is_empty():
            logger.info(
                "remote %s: %d added, %d removed, %d changed",
                name,
                len(diff.added),
                len(diff.removed),
                len(diff.changed),
            )
        return diff

    def reclone(self, name: str) -> ManifestDiff:
        """Throw away the local clone and fetch it again."""
        dest = self.clone_path(name)
        if dest.exists():
            shutil.rmtree(dest)
        return self.refresh(name)
