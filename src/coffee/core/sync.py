"""Per-plugin locks and phase-boundary cancellation."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .errors import OperationCancelled


class CancelToken:
    """Cancellation request honored at pipeline phase boundaries."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, phase: str) -> None:
        if self._event.is_set():
            raise OperationCancelled(phase)


class LockTable:
    """One lock per plugin name plus a single commit lock.

    Pipelines for disjoint names may overlap their fetch/build phases; every
    index, registry or config mutation happens under ``commit``.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self.commit = threading.RLock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    @contextmanager
    def plugin(self, name: str) -> Iterator[None]:
        lock = self._lock_for(name)
        with lock:
            yield
