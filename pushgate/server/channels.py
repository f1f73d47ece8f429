"""Per-worker channels shared between the parent and its workers.

``ProcessQueues`` holds one list per worker plus one error list.  The
lists live in a ``multiprocessing`` manager so every process sees the
same contents; a single lock serializes every read and write across all
of them.  Critical sections are a short copy-in or copy-out.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, MutableSequence, Sequence
from contextlib import AbstractContextManager
from multiprocessing.managers import SyncManager
from typing import Any


class ProcessQueues:
    """N worker channels and one error channel behind one lock.

    Parameters
    ----------
    regions:
        One list-like channel per worker, indexed by worker number.
    errors:
        The channel workers publish permanently failed notifications to.
    lock:
        The single lock guarding every channel.
    """

    def __init__(
        self,
        regions: Sequence[MutableSequence[Any]],
        errors: MutableSequence[Any],
        lock: AbstractContextManager[Any],
    ) -> None:
        if not regions:
            raise ValueError("at least one worker channel is required")
        self._regions = list(regions)
        self._errors = errors
        self._lock = lock

    @classmethod
    def create(
        cls, workers: int, *, manager: SyncManager, lock: AbstractContextManager[Any]
    ) -> ProcessQueues:
        """Build manager-backed channels visible to forked workers."""
        return cls([manager.list() for _ in range(workers)], manager.list(), lock)

    @classmethod
    def local(cls, workers: int) -> ProcessQueues:
        """Build in-process channels (single process use and tests)."""
        return cls([[] for _ in range(workers)], [], threading.Lock())

    @property
    def workers(self) -> int:
        return len(self._regions)

    def append(self, index: int, item: Any) -> None:
        with self._lock:
            self._regions[index].append(item)

    def exchange(self, index: int, errors: Iterable[Any] = ()) -> list[Any]:
        """Publish *errors* and drain worker *index*'s channel in one critical section."""
        errors = list(errors)
        with self._lock:
            if errors:
                self._errors.extend(errors)
            region = self._regions[index]
            drained = list(region[:])
            del region[:]
        return drained

    def collect(self, empty: bool = True) -> list[Any]:
        """Concatenate every worker channel in worker order."""
        items: list[Any] = []
        with self._lock:
            for region in self._regions:
                items.extend(region[:])
                if empty:
                    del region[:]
        return items

    def publish_errors(self, errors: Iterable[Any]) -> None:
        errors = list(errors)
        with self._lock:
            self._errors.extend(errors)

    def collect_errors(self, empty: bool = True) -> list[Any]:
        with self._lock:
            items = list(self._errors[:])
            if empty:
                del self._errors[:]
        return items

    def pending(self) -> int:
        """Number of items waiting in worker channels."""
        with self._lock:
            return sum(len(region) for region in self._regions)
