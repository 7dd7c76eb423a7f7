"""Tests for the click CLI: commands render results and map errors to exit codes."""

import shutil

import pytest
from click.testing import CliRunner

from coffee.__main__ import cli


@pytest.fixture
def run(manager, tmp_path):
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(
            cli, ["--data-dir", str(tmp_path / "coffee"), *args], obj={"manager": manager}
        )

    return invoke


@pytest.fixture
def core(run, upstream):
    result = run("remote", "add", "core", str(upstream("core", ["summary", "helpme"], tipping="lno1x")))
    assert result.exit_code == 0, result.output
    return result


class TestHelp:
    def test_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("install", "upgrade", "remote", "nurse", "setup", "tip"):
            assert command in result.output


class TestPluginCommands:
    def test_empty_list(self, run):
        result = run("list")
        assert result.exit_code == 0
        assert "no plugins installed" in result.output

    def test_remote_add(self, core):
        assert "added remote core (2 plugins)" in core.output

    def test_install_and_list(self, run, core):
        result = run("install", "summary")
        assert result.exit_code == 0, result.output
        assert "installed summary from core" in result.output
        listing = run("list")
        assert "summary" in listing.output
        assert "on" in listing.output

    def test_install_at_remote(self, run, core, manager):
        result = run("install", "helpme@core")
        assert result.exit_code == 0, result.output
        assert manager.index.get("helpme").origin_remote == "core"

    def test_install_unknown_exits_nonzero(self, run, core):
        result = run("install", "nope")
        assert result.exit_code == 1
        assert "error: plugin `nope` not found" in result.output

    def test_remove(self, run, core):
        run("install", "summary")
        result = run("remove", "summary")
        assert result.exit_code == 0
        assert "removed summary" in result.output

    def test_enable_disable(self, run, core, manager):
        run("install", "summary")
        assert run("disable", "summary").exit_code == 0
        assert manager.index.get("summary").enabled is False
        assert run("enable", "summary").exit_code == 0
        assert manager.index.get("summary").enabled is True

    def test_upgrade_up_to_date(self, run, core):
        run("install", "summary")
        result = run("upgrade", "core")
        assert result.exit_code == 0
        assert "core up to date" in result.output

    def test_upgrade_failure_exits_nonzero(self, run, core, upstream, builder):
        run("install", "summary")
        root = upstream("core", [])
        (root / "summary" / "summary.py").write_text("#!/usr/bin/env python3\nprint(2)\n")
        builder.failing.add("summary")
        result = run("upgrade")
        assert result.exit_code == 1
        assert "failed summary" in result.output

    def test_show_and_search(self, run, core):
        assert "A plugin called summary." in run("show", "summary").output
        assert "summary in core" in run("search", "summary").output

    def test_tip(self, run, core, payer):
        run("install", "summary")
        result = run("tip", "summary", "1000")
        assert result.exit_code == 0, result.output
        assert "tipped summary 1000 msat" in result.output
        assert len(payer.payments) == 1

    def test_tip_rejects_zero(self, run, core):
        assert run("tip", "summary", "0").exit_code == 2


class TestRemoteCommands:
    def test_list_and_inspect(self, run, core):
        assert "core" in run("remote", "list").output
        inspect = run("remote", "inspect", "core")
        assert "helpme" in inspect.output
        assert "summary" in inspect.output

    def test_bare_name_shows_that_remote(self, run, core, upstream):
        run("remote", "add", "extra", str(upstream("extra", ["relay"])))
        result = run("remote", "core")
        assert result.exit_code == 0, result.output
        assert "core" in result.output
        assert "extra" not in result.output
        shown = run("remote", "show", "extra")
        assert shown.exit_code == 0, shown.output
        assert "extra" in shown.output

    def test_bare_unknown_name(self, run, core):
        result = run("remote", "nope")
        assert result.exit_code == 1
        assert "error:" in result.output

    def test_rm_in_use_needs_force(self, run, core):
        run("install", "summary")
        result = run("remote", "rm", "core")
        assert result.exit_code == 1
        assert "--force" in result.output
        assert run("remote", "rm", "core", "--force").exit_code == 0
        assert "no remotes configured" in run("remote", "list").output


class TestConfigCommands:
    def test_nurse_verify(self, run, core):
        result = run("nurse", "--verify")
        assert result.exit_code == 0
        assert "coffee is sane" in result.output

    def test_nurse_repair(self, run, core, manager):
        shutil.rmtree(manager.registry.clone_path("core"))
        assert run("nurse", "--verify").exit_code == 1
        result = run("nurse")
        assert result.exit_code == 0, result.output
        assert "repository restored core" in result.output

    def test_setup_and_teardown(self, run, cln_root, conf_path):
        result = run("setup", str(cln_root))
        assert result.exit_code == 0, result.output
        assert "managing plugins in" in result.output
        assert run("teardown", str(cln_root)).exit_code == 0
        assert "coffee:" not in conf_path.read_text()
