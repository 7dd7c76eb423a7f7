"""Tests for the plugin index store."""

from pathlib import Path

import pytest

from coffee.core.errors import AlreadyInstalled, PluginNotFound
from coffee.plugins.index import PluginIndex
from coffee.plugins.models import InstalledPlugin, InstallMode


def _plugin(name="summary", remote="core", **kwargs) -> InstalledPlugin:
    return InstalledPlugin(
        name=name,
        origin_remote=remote,
        resolved_commit_or_version="abc123",
        artifact_path=Path(f"/plugins/{remote}/{name}/{name}.py"),
        **kwargs,
    )


class TestPluginIndex:
    def test_empty(self, tmp_path):
        index = PluginIndex(tmp_path / "plugins.json")
        assert len(index) == 0
        assert index.list() == []

    def test_add_and_reload(self, tmp_path):
        index = PluginIndex(tmp_path / "plugins.json")
        index.add(_plugin(install_mode=InstallMode.DYNAMIC, tip_total_msat=42))
        reloaded = PluginIndex(tmp_path / "plugins.json")
        p = reloaded.get("summary")
        assert p.install_mode == InstallMode.DYNAMIC
        assert p.tip_total_msat == 42
        assert p.artifact_path == Path("/plugins/core/summary/summary.py")
        assert p.enabled is True

    def test_names_are_unique(self, tmp_path):
        index = PluginIndex(tmp_path / "plugins.json")
        index.add(_plugin())
        with pytest.raises(AlreadyInstalled):
            index.add(_plugin(remote="other"))

    def test_from_remote(self, tmp_path):
        index = PluginIndex(tmp_path / "plugins.json")
        index.add(_plugin("a", "core"))
        index.add(_plugin("b", "other"))
        index.add(_plugin("c", "core"))
        assert [p.name for p in index.from_remote("core")] == ["a", "c"]

    def test_update_and_remove(self, tmp_path):
        index = PluginIndex(tmp_path / "plugins.json")
        plugin = _plugin()
        index.add(plugin)
        plugin.enabled = False
        index.update(plugin)
        assert PluginIndex(tmp_path / "plugins.json").get("summary").enabled is False
        index.remove("summary")
        assert "summary" not in PluginIndex(tmp_path / "plugins.json")

    def test_unknown(self, tmp_path):
        index = PluginIndex(tmp_path / "plugins.json")
        with pytest.raises(PluginNotFound):
            index.get("nope")
        with pytest.raises(PluginNotFound):
            index.remove("nope")
        with pytest.raises(PluginNotFound):
            index.update(_plugin("nope"))
