"""Build strategy selection: decide how a plugin tree becomes a runnable artifact."""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from coffee.core.errors import BuildFailed
from coffee.core.utils import has_shebang, is_executable, make_executable, truncate
from coffee.remotes.models import Language, PluginDescriptor

from .models import InstallMode

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    ok: bool
    output: str = ""


class Builder(Protocol):
    def run(self, command: list[str] | str, cwd: Path, verbose: bool = False) -> BuildResult: ...


class ShellBuilder:
    """Run toolchain commands in the plugin directory."""

    def __init__(self, timeout: int = 600):
        self.timeout = timeout

    def run(self, command: list[str] | str, cwd: Path, verbose: bool = False) -> BuildResult:
        shell = isinstance(command, str)
        logger.debug("building in %s: %s", cwd, command)
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                shell=shell,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return BuildResult(False, f"build timed out after {self.timeout}s")
        except FileNotFoundError as e:
            return BuildResult(False, f"toolchain not found: {e.filename}")
        output = (result.stdout or "") + (result.stderr or "")
        if verbose and output.strip():
            logger.info("%s", output.rstrip())
        return BuildResult(result.returncode == 0, output)


def build_command(plugin_dir: Path, descriptor: PluginDescriptor) -> list[str] | str | None:
    """The command that builds *descriptor*, or None when nothing needs building."""
    if descriptor.install_script.strip():
        return descriptor.install_script
    language = descriptor.language_hint
    pip = [sys.executable, "-m", "pip", "install", "-r", "requirements.txt"]
    if language == Language.PYPIP:
        return pip if (plugin_dir / "requirements.txt").exists() else None
    if language == Language.PYPOETRY:
        return (
            "poetry export -f requirements.txt --output requirements.txt --without-hashes && "
            + " ".join(shlex.quote(a) for a in pip)
        )
    if language == Language.GO:
        return ["go", "build", "-o", descriptor.main]
    if language == Language.RUST:
        return ["cargo", "build", "--release"]
    if language == Language.JAVASCRIPT:
        return ["npm", "install"]
    return None


def artifact_ok(path: Path, mode: InstallMode) -> bool:
    """Compiled artifacts must be executable; dynamic ones runnable source."""
    if mode == InstallMode.COMPILED:
        return is_executable(path)
    return path.is_file() and (is_executable(path) or has_shebang(path))


class BuildStrategySelector:
    def __init__(self, builder: Builder):
        self.builder = builder

    def prepare(
        self,
        plugin_dir: Path,
        descriptor: PluginDescriptor,
        mode: InstallMode,
        verbose: bool = False,
    ) -> Path:
        """Make the plugin in *plugin_dir* runnable. Returns the artifact path."""
        name = descriptor.name
        if not descriptor.main:
            raise BuildFailed(name, "the plugin does not declare an entry point (`main`)")
        artifact = plugin_dir / descriptor.main

        if mode == InstallMode.DYNAMIC:
            if not artifact_ok(artifact, mode):
                raise BuildFailed(
                    name,
                    f"{descriptor.main} is not directly runnable; install without --dynamic",
                )
            make_executable(artifact)
            return artifact

        command = build_command(plugin_dir, descriptor)
        if command is None and descriptor.language_hint == Language.JAVA:
            raise BuildFailed(name, "java plugins need an `install` script in coffee.yml")
        if command is not None:
            logger.info("building %s (%s)", name, descriptor.language_hint.value)
            result = self.builder.run(command, plugin_dir, verbose)
            if not result.ok:
                raise BuildFailed(name, truncate(result.output))

        if not artifact.is_file():
            raise BuildFailed(name, f"build finished but {descriptor.main} was not produced")
        if not is_executable(artifact):
            if not has_shebang(artifact):
                raise BuildFailed(name, f"{descriptor.main} is not executable")
            make_executable(artifact)
        return artifact
