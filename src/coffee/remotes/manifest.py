"""Scan a cloned remote for the plugins it advertises.

A remote is either a single-plugin repository (``coffee.yml`` at its root)
or a collection with one plugin per top-level directory. Each plugin
directory either ships a ``coffee.yml``::

    plugin:
      name: helpme
      version: 0.1.0
      lang: pypip
      install: |
        pip install -r requirements.txt
      main: helpme.py
    tipping:
      bolt12: lno1...

or has its language and entry point inferred from well-known files.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .models import Language, PluginDescriptor

logger = logging.getLogger(__name__)

MANIFEST_NAMES = ("coffee.yml", "coffee.yaml")
README_NAMES = ("README.md", "readme.md", "Readme.md", "README")

# checked in order, first match wins
_LANGUAGE_MARKERS: tuple[tuple[str, Language], ...] = (
    ("pyproject.toml", Language.PYPOETRY),
    ("requirements.txt", Language.PYPIP),
    ("go.mod", Language.GO),
    ("Cargo.toml", Language.RUST),
    ("package.json", Language.JAVASCRIPT),
    ("pom.xml", Language.JAVA),
    ("build.gradle", Language.JAVA),
)


def _find_manifest(directory: Path) -> Path | None:
    for name in MANIFEST_NAMES:
        p = directory / name
        if p.is_file():
            return p
    return None


def _read_readme(directory: Path) -> str | None:
    for name in README_NAMES:
        p = directory / name
        if p.is_file():
            return p.read_text(encoding="utf-8", errors="replace")
    return None


def parse_coffee_manifest(path: Path) -> dict | None:
    """Parse a coffee.yml. Returns None when it is unreadable or malformed."""
    try:
        data = yaml.safe_load(path.read_text())
    except (yaml.YAMLError, OSError) as e:
        logger.warning("ignoring malformed manifest %s: %s", path, e)
        return None
    if not isinstance(data, dict) or not isinstance(data.get("plugin"), dict):
        logger.warning("ignoring manifest %s: missing `plugin` section", path)
        return None
    return data


def detect_language(directory: Path) -> Language:
    for marker, language in _LANGUAGE_MARKERS:
        if (directory / marker).exists():
            return language
    if any(directory.glob("*.py")):
        return Language.PYPIP
    return Language.UNKNOWN


def guess_main(directory: Path, name: str, language: Language) -> str:
    """Guess the entry point of a plugin without a coffee.yml."""
    if language == Language.RUST:
        return f"target/release/{name}"
    if language == Language.GO:
        return name
    for candidate in (f"{name}.py", f"{name}.js", f"{name}.sh", name):
        if (directory / candidate).is_file():
            return candidate
    return ""


def _descriptor_from_manifest(data: dict, directory: Path, subpath: str) -> PluginDescriptor:
    plugin = data["plugin"]
    name = str(plugin.get("name") or directory.name)
    language = Language.parse(plugin.get("lang"))
    if language == Language.UNKNOWN:
        language = detect_language(directory)
    tipping = data.get("tipping") if isinstance(data.get("tipping"), dict) else {}
    return PluginDescriptor(
        name=name,
        repository_subpath=subpath,
        language_hint=language,
        readme=_read_readme(directory),
        version=str(plugin.get("version") or ""),
        main=str(plugin.get("main") or guess_main(directory, name, language)),
        install_script=str(plugin.get("install") or ""),
        tipping={"bolt12": str(tipping["bolt12"])} if tipping.get("bolt12") else {},
    )


def _descriptor_from_layout(directory: Path, subpath: str) -> PluginDescriptor | None:
    language = detect_language(directory)
    main = guess_main(directory, directory.name, language)
    if not main:
        return None
    return PluginDescriptor(
        name=directory.name,
        repository_subpath=subpath,
        language_hint=language,
        readme=_read_readme(directory),
        main=main,
    )


def describe_directory(directory: Path, subpath: str) -> PluginDescriptor | None:
    manifest = _find_manifest(directory)
    if manifest is not None:
        data = parse_coffee_manifest(manifest)
        if data is not None:
            return _descriptor_from_manifest(data, directory, subpath)
    return _descriptor_from_layout(directory, subpath)


def scan_manifest(root: Path) -> list[PluginDescriptor]:
    """Return the plugins advertised by the tree at *root*, in directory order."""
    if _find_manifest(root) is not None:
        single = describe_directory(root, ".")
        return [single] if single else []

    result: list[PluginDescriptor] = []
    seen: set[str] = set()
    for d in sorted(root.iterdir()):
        if not d.is_dir() or d.name.startswith("."):
            continue
        descriptor = describe_directory(d, d.name)
        if descriptor is None:
            continue
        if descriptor.name in seen:
            logger.warning("duplicate plugin `%s` in %s, keeping the first", descriptor.name, root)
            continue
        seen.add(descriptor.name)
        result.append(descriptor)
    return result
