"""Plugins: index, build strategies, install/upgrade/toggle/tip lifecycle."""

from .build import BuildResult, BuildStrategySelector, ShellBuilder
from .index import PluginIndex
from .install import InstallPipeline
from .models import (
    InstalledPlugin,
    InstallMode,
    SearchResult,
    ShowResult,
    TipOutcome,
    UpgradeOutcome,
    UpgradeStatus,
)
from .tip import TipService
from .toggle import ToggleService
from .upgrade import UpgradePipeline

__all__ = [
    "BuildResult",
    "BuildStrategySelector",
    "InstallMode",
    "InstallPipeline",
    "InstalledPlugin",
    "PluginIndex",
    "SearchResult",
    "ShellBuilder",
    "ShowResult",
    "TipOutcome",
    "TipService",
    "ToggleService",
    "UpgradeOutcome",
    "UpgradePipeline",
    "UpgradeStatus",
]
