"""ConfigPatcher: read-merge-write the coffee-managed block of the lightning config.

The block looks like::

    # coffee: begin managed plugins
    plugin=/home/node/.coffee/bitcoin/plugins/core/summary/summary.py
    # coffee: end managed plugins

Everything outside the markers belongs to the operator and the daemon and is
written back byte-for-byte.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from coffee.core.errors import ConfigPatchFailed
from coffee.core.utils import atomic_write_text

logger = logging.getLogger(__name__)

BEGIN_MARKER = "# coffee: begin managed plugins"
END_MARKER = "# coffee: end managed plugins"
DIRECTIVE = "plugin="

# operator bytes that are not utf-8 survive a read-modify-write
ENCODING_ERRORS = "surrogateescape"


def directive_for(path: Path | str) -> str:
    return f"{DIRECTIVE}{path}\n"


def _directive_value(line: str) -> str | None:
    stripped = line.strip()
    if stripped.startswith(DIRECTIVE):
        return stripped[len(DIRECTIVE) :].strip()
    return None


@dataclass
class ConfigDocument:
    """A config file split around the managed block (lines keep their endings)."""

    head: list[str] = field(default_factory=list)
    block: list[str] | None = None
    tail: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> ConfigDocument:
        lines = text.splitlines(keepends=True)
        doc = cls()
        begin = end = None
        for i, line in enumerate(lines):
            if line.strip() == BEGIN_MARKER and begin is None:
                begin = i
            elif line.strip() == END_MARKER and begin is not None:
                end = i
                break
        if begin is None:
            doc.head = lines
            return doc
        if end is None:
            raise ConfigPatchFailed(f"`{BEGIN_MARKER}` has no matching `{END_MARKER}`")
        doc.head = lines[:begin]
        doc.block = lines[begin + 1 : end]
        doc.tail = lines[end + 1 :]
        return doc

    def render(self) -> str:
        if self.block is None:
            return "".join(self.head + self.tail)
        head = list(self.head)
        if head and not head[-1].endswith("\n"):
            head[-1] += "\n"
        block = [line if line.endswith("\n") else line + "\n" for line in self.block]
        return "".join(head + [BEGIN_MARKER + "\n"] + block + [END_MARKER + "\n"] + self.tail)

    def directives(self) -> list[str]:
        if self.block is None:
            return []
        return [v for v in (_directive_value(line) for line in self.block) if v is not None]

    def ensure_block(self) -> list[str]:
        if self.block is None:
            self.block = []
        return self.block


class ConfigPatcher:
    """Scoped read-merge-write access to one lightning config file."""

    def __init__(self, path: Path):
        self.path = path

    def _read_text(self) -> str | None:
        try:
            if not self.path.exists():
                return None
            return self.path.read_text(encoding="utf-8", errors=ENCODING_ERRORS)
        except (OSError, UnicodeError) as e:
            raise ConfigPatchFailed(f"cannot read {self.path}: {e}") from e

    def read(self) -> ConfigDocument:
        return ConfigDocument.parse(self._read_text() or "")

    def _write(self, text: str) -> None:
        try:
            atomic_write_text(self.path, text, errors=ENCODING_ERRORS)
        except (OSError, UnicodeError) as e:
            raise ConfigPatchFailed(f"cannot write {self.path}: {e}") from e

    def _patch(self, mutate: Callable[[ConfigDocument], None]) -> bool:
        """Apply *mutate* and write back. Returns False when nothing changed."""
        before = self._read_text()
        doc = ConfigDocument.parse(before or "")
        mutate(doc)
        after = doc.render()
        if after == (before or ""):
            return False
        self._write(after)
        return True

    # ── queries ─────────────────────────────────────────────────────

    def has_block(self) -> bool:
        return self.read().block is not None

    def directives(self) -> list[str]:
        return self.read().directives()

    # ── mutations ───────────────────────────────────────────────────

    def set_directive(self, path: Path | str, present: bool) -> bool:
        """Leave exactly one (present) or zero directives for *path*."""
        target = str(path)

        def mutate(doc: ConfigDocument) -> None:
            if doc.block is None and not present:
                return
            block = doc.ensure_block()
            kept: list[str] = []
            seen = False
            for line in block:
                if _directive_value(line) == target:
                    if present and not seen:
                        kept.append(line)
                        seen = True
                    continue
                kept.append(line)
            if present and not seen:
                kept.append(directive_for(target))
            doc.block = kept

        changed = self._patch(mutate)
        if changed:
            logger.info("%s directive for %s", "added" if present else "removed", target)
        return changed

    def enable(self, path: Path | str) -> bool:
        return self.set_directive(path, True)

    def disable(self, path: Path | str) -> bool:
        return self.set_directive(path, False)

    def replace(self, old: Path | str, new: Path | str) -> bool:
        """Point the directive for *old* at *new*, keeping its position."""
        old_s, new_s = str(old), str(new)

        def mutate(doc: ConfigDocument) -> None:
            block = doc.ensure_block()
            replaced = False
            updated: list[str] = []
            for line in block:
                value = _directive_value(line)
                if value == old_s and not replaced:
                    updated.append(directive_for(new_s))
                    replaced = True
                elif value in (old_s, new_s):
                    continue
                else:
                    updated.append(line)
            if not replaced:
                updated.append(directive_for(new_s))
            doc.block = updated

        return self._patch(mutate)

    def ensure_block(self, paths: list[Path | str] | None = None) -> bool:
        """Create the managed block if absent and make sure *paths* are declared."""
        wanted = [str(p) for p in paths or []]

        def mutate(doc: ConfigDocument) -> None:
            block = doc.ensure_block()
            present = set(doc.directives())
            for p in wanted:
                if p not in present:
                    block.append(directive_for(p))
                    present.add(p)

        return self._patch(mutate)

    def remove_block(self) -> bool:
        def mutate(doc: ConfigDocument) -> None:
            doc.block = None

        return self._patch(mutate)
