"""Round-robin distribution of messages over worker channels."""

from __future__ import annotations

from typing import Any

from pushgate.server.channels import ProcessQueues


class RoundRobinDispatcher:
    """Parent-owned dispatcher; the counter is ordinary state, not shared."""

    def __init__(self, queues: ProcessQueues) -> None:
        self._queues = queues
        self._next = 0

    @property
    def next_index(self) -> int:
        return self._next

    def add(self, item: Any) -> int:
        """Append *item* to the next worker's channel and return that worker index."""
        index = self._next
        self._queues.append(index, item)
        self._next = (index + 1) % self._queues.workers
        return index
