"""Per-identifier locking for index builds, deletes and searches."""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Iterable, Iterator


class SharedLock:
    """Readers/writer lock: many searches, or one build/delete."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class IdentifierLocks:
    """Lazily created SharedLock per index identifier."""

    def __init__(self) -> None:
        self._locks: Dict[str, SharedLock] = {}
        self._guard = threading.Lock()

    def get(self, identifier: str) -> SharedLock:
        with self._guard:
            lock = self._locks.get(identifier)
            if lock is None:
                lock = self._locks[identifier] = SharedLock()
            return lock

    def exclusive(self, identifier: str):
        return self.get(identifier).exclusive()

    @contextmanager
    def shared(self, identifiers: Iterable[str]) -> Iterator[None]:
        """Hold shared locks on several identifiers, acquired in sorted order."""
        with ExitStack() as stack:
            for identifier in sorted(set(identifiers)):
                stack.enter_context(self.get(identifier).shared())
            yield
