"""Tests for the upgrade pipeline: up-to-date detection, swap-in-place, per-plugin isolation."""

import shutil

import pytest

from coffee.cln.conf import ConfigPatcher
from coffee.core.errors import FetchFailed, RemoteNotFound
from coffee.plugins.models import UpgradeStatus


@pytest.fixture
def root(upstream):
    return upstream("core", ["summary", "helpme"])


@pytest.fixture
def installed(manager, root):
    manager.remote_add("core", str(root))
    manager.install("summary")
    manager.install("helpme")
    return manager


def _touch(root, name, body):
    (root / name / f"{name}.py").write_text(f"#!/usr/bin/env python3\n{body}\n")


class TestUpToDate:
    def test_no_upstream_change_is_byte_identical(self, installed, conf_path):
        index_before = installed.config.index_path.read_bytes()
        conf_before = conf_path.read_bytes()
        outcome = installed.upgrade("core")
        assert outcome.status == UpgradeStatus.UP_TO_DATE
        assert outcome.updated == []
        assert outcome.all_successful
        assert outcome.commit
        assert installed.config.index_path.read_bytes() == index_before
        assert conf_path.read_bytes() == conf_before

    def test_all_remotes(self, installed):
        outcome = installed.upgrade()
        assert outcome.status == UpgradeStatus.UP_TO_DATE
        assert outcome.remote is None


class TestUpdated:
    def test_rebuilds_changed_plugin(self, installed, root, builder):
        old = installed.index.get("summary").resolved_commit_or_version
        _touch(root, "summary", "print('v2')")
        outcome = installed.upgrade("core")
        assert outcome.status == UpgradeStatus.UPDATED
        assert outcome.updated == ["summary"]
        plugin = installed.index.get("summary")
        assert plugin.resolved_commit_or_version != old
        assert "v2" in plugin.artifact_path.read_text()
        assert not (installed.config.plugins_dir / "core" / ".summary.old").exists()

    def test_manifest_only_change_is_updated(self, installed, make_plugin, root):
        make_plugin(root, "rebalance")
        outcome = installed.upgrade("core")
        assert outcome.status == UpgradeStatus.UPDATED
        assert outcome.updated == []

    def test_moved_entry_point_rewrites_directive(self, installed, root, conf_path):
        plugin_dir = root / "summary"
        (plugin_dir / "bin").mkdir()
        (plugin_dir / "bin" / "run.py").write_text("#!/usr/bin/env python3\n")
        manifest = (plugin_dir / "coffee.yml").read_text()
        (plugin_dir / "coffee.yml").write_text(manifest.replace("main: summary.py", "main: bin/run.py"))
        installed.upgrade("core")
        plugin = installed.index.get("summary")
        assert plugin.artifact_path.name == "run.py"
        directives = ConfigPatcher(conf_path).directives()
        assert directives[0] == str(plugin.artifact_path)
        assert len(directives) == 2


class TestFailSafe:
    def test_build_failure_keeps_previous(self, installed, root, builder, conf_path):
        before = installed.index.get("summary")
        old_version, old_artifact = before.resolved_commit_or_version, before.artifact_path
        conf_before = conf_path.read_bytes()
        _touch(root, "summary", "print('broken')")
        builder.failing.add("summary")
        outcome = installed.upgrade("core")
        assert "summary" in outcome.failures
        assert outcome.failures["summary"].plugin == "summary"
        after = installed.index.get("summary")
        assert after.resolved_commit_or_version == old_version
        assert after.artifact_path == old_artifact
        assert "hello" in old_artifact.read_text()
        assert conf_path.read_bytes() == conf_before

    def test_failures_are_isolated_per_plugin(self, installed, root, builder):
        _touch(root, "summary", "print('v2')")
        _touch(root, "helpme", "print('v2')")
        builder.failing.add("summary")
        outcome = installed.upgrade("core")
        assert outcome.updated == ["helpme"]
        assert list(outcome.failures) == ["summary"]
        assert not outcome.all_successful

    def test_plugin_no_longer_advertised(self, installed, root):
        shutil.rmtree(root / "helpme")
        outcome = installed.upgrade("core")
        assert "helpme" in outcome.failures
        assert "helpme" in installed.index

    def test_retry_after_fix(self, installed, root, builder):
        _touch(root, "summary", "print('v2')")
        builder.failing.add("summary")
        installed.upgrade("core")
        builder.failing.clear()
        assert installed.upgrade("core").updated == ["summary"]


class TestRemoteErrors:
    def test_unknown_remote(self, installed):
        with pytest.raises(RemoteNotFound):
            installed.upgrade("nope")

    def test_explicit_remote_fetch_failure_propagates(self, installed, fetcher):
        fetcher.fail = True
        with pytest.raises(FetchFailed):
            installed.upgrade("core")

    def test_all_remotes_records_refresh_failure(self, installed, upstream, fetcher):
        installed.remote_add("other", str(upstream("other", ["rebalance"])))
        fetcher.origins.pop(installed.registry.clone_path("other"))
        outcome = installed.upgrade()
        assert list(outcome.failures) == ["@other"]
        assert outcome.status == UpgradeStatus.UP_TO_DATE
