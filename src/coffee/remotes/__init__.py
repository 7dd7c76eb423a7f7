"""Remotes: git repositories advertising plugins, their manifests and local clones."""

from .git import Fetcher, GitFetcher
from .manifest import scan_manifest
from .models import Language, ManifestDiff, PluginDescriptor, Remote
from .registry import RemoteRegistry

__all__ = [
    "Fetcher",
    "GitFetcher",
    "Language",
    "ManifestDiff",
    "PluginDescriptor",
    "Remote",
    "RemoteRegistry",
    "scan_manifest",
]
