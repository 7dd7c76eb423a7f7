"""Tests for build strategy selection and artifact validation."""

import sys

import pytest

from coffee.core.errors import BuildFailed
from coffee.core.utils import is_executable
from coffee.plugins.build import BuildStrategySelector, ShellBuilder, artifact_ok, build_command
from coffee.plugins.models import InstallMode
from coffee.remotes.models import Language, PluginDescriptor


def _descriptor(name="summary", lang=Language.PYPIP, main=None, **kwargs):
    return PluginDescriptor(name=name, language_hint=lang, main=main or f"{name}.py", **kwargs)


class TestBuildCommand:
    def test_install_script_wins(self, tmp_path):
        d = _descriptor(lang=Language.GO, install_script="make")
        assert build_command(tmp_path, d) == "make"

    def test_pip_requirements(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("pyln-client\n")
        cmd = build_command(tmp_path, _descriptor())
        assert cmd[:3] == [sys.executable, "-m", "pip"]

    def test_pip_without_requirements(self, tmp_path):
        assert build_command(tmp_path, _descriptor()) is None

    @pytest.mark.parametrize(
        "lang, expected",
        [
            (Language.GO, ["go", "build", "-o", "summary"]),
            (Language.RUST, ["cargo", "build", "--release"]),
            (Language.JAVASCRIPT, ["npm", "install"]),
        ],
    )
    def test_toolchains(self, tmp_path, lang, expected):
        assert build_command(tmp_path, _descriptor(lang=lang, main="summary")) == expected

    def test_poetry_is_shell(self, tmp_path):
        assert "poetry export" in build_command(tmp_path, _descriptor(lang=Language.PYPOETRY))


class TestArtifactOk:
    def test_dynamic_accepts_shebang(self, tmp_path):
        script = tmp_path / "p.py"
        script.write_text("#!/usr/bin/env python3\n")
        assert artifact_ok(script, InstallMode.DYNAMIC)
        assert not artifact_ok(script, InstallMode.COMPILED)

    def test_missing(self, tmp_path):
        assert not artifact_ok(tmp_path / "nope", InstallMode.DYNAMIC)


class TestSelector:
    def test_dynamic_skips_build(self, tmp_path, builder, make_plugin):
        plugin_dir = make_plugin(tmp_path, "summary")
        artifact = BuildStrategySelector(builder).prepare(
            plugin_dir, _descriptor(), InstallMode.DYNAMIC
        )
        assert artifact == plugin_dir / "summary.py"
        assert is_executable(artifact)
        assert builder.calls == []

    def test_dynamic_rejects_plain_file(self, tmp_path, builder):
        (tmp_path / "summary.py").write_text("print(1)\n")
        with pytest.raises(BuildFailed, match="not directly runnable"):
            BuildStrategySelector(builder).prepare(tmp_path, _descriptor(), InstallMode.DYNAMIC)

    def test_compiled_runs_builder(self, tmp_path, builder, make_plugin):
        plugin_dir = make_plugin(tmp_path, "summary")
        artifact = BuildStrategySelector(builder).prepare(
            plugin_dir, _descriptor(), InstallMode.COMPILED
        )
        assert len(builder.calls) == 1
        assert builder.calls[0][1] == plugin_dir
        assert is_executable(artifact)

    def test_compiled_failure_carries_output(self, tmp_path, builder, make_plugin):
        plugin_dir = make_plugin(tmp_path, "summary")
        builder.failing.add("summary")
        with pytest.raises(BuildFailed) as exc:
            BuildStrategySelector(builder).prepare(plugin_dir, _descriptor(), InstallMode.COMPILED)
        assert "E0425" in exc.value.output

    def test_missing_artifact_after_build(self, tmp_path, builder):
        d = _descriptor(lang=Language.RUST, main="target/release/summary")
        with pytest.raises(BuildFailed, match="was not produced"):
            BuildStrategySelector(builder).prepare(tmp_path, d, InstallMode.COMPILED)

    def test_java_needs_script(self, tmp_path, builder):
        d = _descriptor(lang=Language.JAVA, main="plugin.jar")
        with pytest.raises(BuildFailed, match="install"):
            BuildStrategySelector(builder).prepare(tmp_path, d, InstallMode.COMPILED)

    def test_no_main(self, tmp_path, builder):
        d = PluginDescriptor(name="summary")
        with pytest.raises(BuildFailed, match="entry point"):
            BuildStrategySelector(builder).prepare(tmp_path, d, InstallMode.COMPILED)


class TestShellBuilder:
    def test_success(self, tmp_path):
        result = ShellBuilder().run("echo built", tmp_path)
        assert result.ok
        assert "built" in result.output

    def test_failure(self, tmp_path):
        result = ShellBuilder().run("echo broken >&2; exit 3", tmp_path)
        assert not result.ok
        assert "broken" in result.output

    def test_missing_toolchain(self, tmp_path):
        result = ShellBuilder().run(["definitely-not-a-toolchain-xyz"], tmp_path)
        assert not result.ok
        assert "toolchain not found" in result.output
