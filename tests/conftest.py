"""Shared fixtures: local upstream repositories and fake fetch/build/pay collaborators."""

import hashlib
import shutil
from pathlib import Path

import pytest

from coffee.core.config import Config
from coffee.core.errors import FetchFailed, PaymentFailed
from coffee.manager import CoffeeManager
from coffee.plugins.build import BuildResult

OPERATOR_CONFIG = "network=bitcoin\nlog-level=debug\nalias=mynode\n"


def tree_hash(path: Path) -> str:
    """Stand-in for a git commit id: a hash over the tree's file contents."""
    h = hashlib.sha1()
    for p in sorted(path.rglob("*")):
        if ".git" in p.parts or not p.is_file():
            continue
        h.update(str(p.relative_to(path)).encode())
        h.update(p.read_bytes())
    return h.hexdigest()


class FakeFetcher:
    """Clones are plain copies of local upstream directories."""

    def __init__(self):
        self.origins: dict[Path, Path] = {}
        self.fail = False
        self.clones = 0
        self.pulls = 0

    def clone(self, url: str, dest: Path) -> None:
        self.clones += 1
        if self.fail or not Path(url).is_dir():
            raise FetchFailed(f"cannot clone {url}")
        shutil.copytree(url, dest)
        self.origins[dest] = Path(url)

    def pull(self, dest: Path) -> None:
        self.pulls += 1
        origin = self.origins.get(dest)
        if self.fail or origin is None:
            raise FetchFailed(f"cannot pull {dest}")
        shutil.rmtree(dest)
        shutil.copytree(origin, dest)

    def head(self, dest: Path) -> tuple[str, str]:
        return tree_hash(dest), "2024-05-01"

    def last_commit(self, dest: Path, subpath: str) -> str:
        return tree_hash(dest if subpath in ("", ".") else dest / subpath)


class FakeBuilder:
    """Records build commands; fails for plugin names listed in ``failing``."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.failing: set[str] = set()

    def run(self, command, cwd: Path, verbose: bool = False) -> BuildResult:
        self.calls.append((command, cwd))
        name = cwd.name.removeprefix(".").removesuffix(".staging")
        if name in self.failing:
            return BuildResult(False, "error[E0425]: cannot find value `x`")
        return BuildResult(True, "ok")


class FakePayer:
    def __init__(self):
        self.payments: list[tuple] = []
        self.error: str | None = None

    def pay(self, tipping: dict, amount_msat: int, note: str) -> dict:
        if self.error:
            raise PaymentFailed(self.error)
        self.payments.append((tipping, amount_msat, note))
        return {
            "status": "complete",
            "destination": "02" + "ab" * 32,
            "payment_hash": "cd" * 32,
            "payment_preimage": "ef" * 32,
        }


def write_plugin(
    root: Path,
    name: str,
    *,
    manifest: bool = True,
    version: str = "0.1.0",
    lang: str = "pypip",
    tipping: str | None = None,
    body: str = "print('hello')",
) -> Path:
    """Create a python plugin directory under *root*."""
    d = root / name
    d.mkdir(parents=True, exist_ok=True)
    (d / f"{name}.py").write_text(f"#!/usr/bin/env python3\n{body}\n")
    (d / "requirements.txt").write_text("pyln-client\n")
    (d / "README.md").write_text(f"# {name}\n\nA plugin called {name}.\n")
    if manifest:
        lines = ["plugin:", f"  name: {name}", f"  version: {version}", f"  lang: {lang}"]
        lines.append(f"  main: {name}.py")
        if tipping:
            lines += ["tipping:", f"  bolt12: {tipping}"]
        (d / "coffee.yml").write_text("\n".join(lines) + "\n")
    return d


@pytest.fixture
def upstream(tmp_path):
    """Factory: ``upstream("core", ["summary", "helpme"])`` builds a remote tree."""

    def make(name: str, plugins: list[str], **kwargs) -> Path:
        root = tmp_path / "upstream" / name
        root.mkdir(parents=True, exist_ok=True)
        for plugin in plugins:
            write_plugin(root, plugin, **kwargs)
        return root

    return make


@pytest.fixture
def cln_root(tmp_path):
    root = tmp_path / "lightning"
    (root / "bitcoin").mkdir(parents=True)
    (root / "bitcoin" / "config").write_text(OPERATOR_CONFIG)
    return root


@pytest.fixture
def config(tmp_path, cln_root):
    return Config(data_dir=tmp_path / "coffee", cln_root=cln_root)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def builder():
    return FakeBuilder()


@pytest.fixture
def payer():
    return FakePayer()


@pytest.fixture
def manager(config, fetcher, builder, payer):
    return CoffeeManager(config, fetcher=fetcher, builder=builder, payer=payer)


@pytest.fixture
def conf_path(cln_root):
    return cln_root / "bitcoin" / "config"


@pytest.fixture
def make_plugin():
    return write_plugin
