"""Worker main loop for the fan-out server.

Each worker owns a ``PushEngine`` and a channel index.  Per iteration it:

1. stops if its cancellation token was set (by a signal handler);
2. stops if its parent process went away;
3. under the shared lock, publishes the engine's failed entries and
   drains its own channel into the engine;
4. sends when something was drained, otherwise sleeps for the poll
   interval.

The engine polls the same token before every frame, so a signal that
arrives during a long send stops it at the next frame; the unsent
entries stay in the engine queue.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable

from pushgate.logs import LoggingSink, LogSink
from pushgate.push.engine import PushEngine
from pushgate.server.channels import ProcessQueues

DEFAULT_POLL_INTERVAL = 0.2


class CancellationToken:
    """A flag polled by the worker loop; signal handlers only call ``cancel``."""

    def __init__(self) -> None:
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._reason is None:
            self._reason = reason


class FanoutWorker:
    """The loop run inside one forked worker process.

    Parameters
    ----------
    index:
        This worker's channel number (0-based).
    queues:
        The shared channels.
    engine:
        A connected delivery engine owned by this worker.
    parent_pid:
        The pid the worker was forked from; a different ``getppid()`` means
        the worker was orphaned.
    cancel:
        Token set by the worker's termination signal handler.
    """

    def __init__(
        self,
        index: int,
        queues: ProcessQueues,
        engine: PushEngine,
        *,
        parent_pid: int,
        cancel: CancellationToken | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        log: LogSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
        getppid: Callable[[], int] = os.getppid,
    ) -> None:
        self._index = index
        self._queues = queues
        self._engine = engine
        self._parent_pid = parent_pid
        self.cancel = cancel or CancellationToken()
        # a send in progress stops at the next frame once cancelled
        self._engine.should_stop = self._should_stop
        self._poll_interval = poll_interval
        self._log = log or LoggingSink()
        self._sleep = sleep
        self._getppid = getppid

    @property
    def index(self) -> int:
        return self._index

    def _should_stop(self) -> bool:
        return self.cancel.cancelled

    def run(self) -> None:
        """Loop until cancelled or orphaned, then publish the last failures."""
        while self.step() is not None:
            pass
        if self._getppid() != self._parent_pid:
            return
        failed = list(self._engine.get_errors().values())
        if failed:
            self._queues.publish_errors(failed)

    def step(self) -> int | None:
        """Run one iteration.

        Returns the number of messages drained, or ``None`` when the loop
        must stop.
        """
        if self.cancel.cancelled:
            self._log.log(
                f"INFO: Process {self._index + 1} received {self.cancel.reason}, shutdown..."
            )
            return None

        if self._getppid() != self._parent_pid:
            self._log.log(
                f"INFO: Parent process {self._parent_pid} died unexpectedly, exiting..."
            )
            return None

        failed = list(self._engine.get_errors().values())
        messages = self._queues.exchange(self._index, failed)
        for message in messages:
            self._engine.enqueue(message)

        if messages:
            self._log.log(
                f"INFO: Process {self._index + 1} has {len(messages)} messages, sending..."
            )
            self._engine.send()
        else:
            self._sleep(self._poll_interval)
        return len(messages)
