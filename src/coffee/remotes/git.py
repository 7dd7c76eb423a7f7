"""Fetch capability: clone/pull remote repositories with the git CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from coffee.core.errors import FetchFailed

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def clone(self, url: str, dest: Path) -> None: ...

    def pull(self, dest: Path) -> None: ...

    def head(self, dest: Path) -> tuple[str, str]: ...

    def last_commit(self, dest: Path, subpath: str) -> str: ...


class GitFetcher:
    """Drive the ``git`` executable. Every failure becomes ``FetchFailed``."""

    def __init__(self, timeout: int = 120):
        self.timeout = timeout

    def _git(self, args: list[str], cwd: Path | None = None) -> str:
        cmd = ["git", *args]
        logger.debug("running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise FetchFailed(f"`git {args[0]}` timed out after {self.timeout}s")
        except FileNotFoundError:
            raise FetchFailed("git is not installed or not in PATH")
        if result.returncode != 0:
            raise FetchFailed(f"`git {args[0]}` failed: {result.stderr.strip()}")
        return result.stdout.strip()

    def clone(self, url: str, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._git(["clone", "--recurse-submodules", url, str(dest)])
        except FetchFailed:
            if dest.exists():
                shutil.rmtree(dest, ignore_errors=True)
            raise

    def pull(self, dest: Path) -> None:
        if not (dest / ".git").exists():
            raise FetchFailed(f"{dest} is not a git checkout")
        self._git(["pull", "--ff-only"], cwd=dest)
        self._git(["submodule", "update", "--init", "--recursive"], cwd=dest)

    def head(self, dest: Path) -> tuple[str, str]:
        out = self._git(["log", "-1", "--format=%H %cs"], cwd=dest)
        commit, _, date = out.partition(" ")
        return commit, date

    def last_commit(self, dest: Path, subpath: str) -> str:
        return self._git(["log", "-1", "--format=%H", "--", subpath], cwd=dest)
