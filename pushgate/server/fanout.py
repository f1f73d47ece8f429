"""Process fan-out server — parallel delivery over forked workers.

``FanoutServer`` forks ``processes`` workers.  Each worker connects its
own ``PushEngine`` and runs a ``FanoutWorker`` loop; the parent
distributes messages round robin into per-worker channels and collects
failed notifications from the shared error channel.

Signals
-------
Signal handlers only record what happened; the work is done by ``run()``
in the parent and by the worker loop in a child:

- ``SIGCHLD`` (parent): flags that workers must be reaped.  ``run()``
  reaps every exited worker without blocking and decrements the running
  count.
- ``SIGTERM`` / ``SIGQUIT`` / ``SIGINT``: in a worker they set the
  cancellation token and the loop exits on its next iteration; in the
  parent they are logged by ``run()`` and otherwise ignored.

An exit hook, effective only in the parent, stops the workers and shuts
down the channel manager.
"""

from __future__ import annotations

import atexit
import logging
import multiprocessing
import os
import signal
import sys
from collections.abc import Callable
from multiprocessing.context import BaseContext
from multiprocessing.managers import SyncManager
from multiprocessing.process import BaseProcess
from types import FrameType

from pushgate.config import PushgateConfig
from pushgate.errors import GatewayConnectionError, ServerError
from pushgate.logs import LoggingSink, LogSink
from pushgate.message import Message
from pushgate.models.notification import QueuedNotification
from pushgate.push.engine import PushEngine
from pushgate.server.channels import ProcessQueues
from pushgate.server.dispatcher import RoundRobinDispatcher
from pushgate.server.worker import CancellationToken, FanoutWorker

TERMINATION_SIGNALS: tuple[signal.Signals, ...] = (
    signal.SIGTERM,
    signal.SIGQUIT,
    signal.SIGINT,
)

SHUTDOWN_JOIN_TIMEOUT = 5.0

logger = logging.getLogger(__name__)


def _ignore_termination_signals() -> None:
    """Manager initializer: leave shutdown of the channel manager to the parent."""
    for signum in TERMINATION_SIGNALS:
        signal.signal(signum, signal.SIG_IGN)


class FanoutServer:
    """Distributes messages over forked delivery workers.

    Parameters
    ----------
    config:
        ``processes`` and ``main_loop_interval`` drive the fan-out; the rest
        configures each worker's engine.
    log:
        Log sink shared by the parent and (after fork) the workers.
    engine_factory:
        Builds a fresh, unconnected engine inside each worker.  Defaults to
        ``PushEngine.from_config(config)``, in which case the credentials
        are checked here.
    queues:
        Channels to use.  Defaults to manager-backed channels guarded by one
        ``multiprocessing`` lock.
    context:
        The ``multiprocessing`` start context; workers must be forked.
    """

    def __init__(
        self,
        config: PushgateConfig,
        *,
        log: LogSink | None = None,
        engine_factory: Callable[[], PushEngine] | None = None,
        queues: ProcessQueues | None = None,
        context: BaseContext | None = None,
    ) -> None:
        self._config = config
        self._log = log or LoggingSink()
        if engine_factory is None:
            config.require_credentials()

            def engine_factory() -> PushEngine:
                return PushEngine.from_config(config, log=self._log)

        self._engine_factory = engine_factory
        self._ctx = context or multiprocessing.get_context("fork")
        self._parent_pid = os.getpid()

        self._manager: SyncManager | None = None
        if queues is None:
            self._manager = SyncManager(ctx=self._ctx)
            self._manager.start(_ignore_termination_signals)
            queues = ProcessQueues.create(
                config.processes, manager=self._manager, lock=self._ctx.Lock()
            )
            logger.debug("Channel manager started for %d workers", config.processes)
        elif queues.workers != config.processes:
            raise ServerError(
                f"{queues.workers} channels for {config.processes} processes"
            )
        self._queues = queues
        self._dispatcher = RoundRobinDispatcher(queues)

        self._workers: list[BaseProcess] = []
        self._reaped: set[int] = set()
        self._running = 0
        self._started = False
        self._child_exited = False
        self._pending_signals: list[int] = []

        atexit.register(self._on_shutdown)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def processes(self) -> int:
        return self._config.processes

    @property
    def running(self) -> int:
        """Workers counted as running."""
        return self._running

    @property
    def pids(self) -> list[int]:
        return [p.pid for p in self._workers if p.pid is not None]

    @property
    def queues(self) -> ProcessQueues:
        return self._queues

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Fork the workers.

        Raises
        ------
        ServerError
            If the server was already started.
        """
        if self._started:
            raise ServerError("Server already started")
        self._started = True
        self._install_parent_handlers()

        for index in range(self._config.processes):
            process = self._ctx.Process(
                target=self._worker_main,
                args=(index,),
                name=f"pushgate-worker-{index + 1}",
                daemon=True,
            )
            try:
                process.start()
            except OSError as exc:
                self._log.log(f"WARNING: Could not fork: {exc}")
                continue
            self._workers.append(process)
            self._running += 1
            self._log.log(f"INFO: Forked process PID {process.pid}")

    def run(self) -> bool:
        """Handle recorded signals; return whether any worker is still running.

        Meant to be polled from the owning application's own loop.
        """
        while self._pending_signals:
            signum = self._pending_signals.pop(0)
            self._log.log(f"INFO: Parent received signal #{signum}, ignored.")
        if self._child_exited:
            self._child_exited = False
            self._reap_children()
        return self._running > 0

    def stop(self) -> None:
        """Ask every live worker to shut down (SIGTERM)."""
        for process in self._workers:
            if process.is_alive():
                self._log.log(f"INFO: Stopping process PID {process.pid}...")
                process.terminate()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the workers to exit, then reap them."""
        for process in self._workers:
            process.join(timeout)
        self._reap_children()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add(self, message: Message) -> int:
        """Queue *message* on the next worker's channel.

        The payload is rendered here so that an invalid message fails in
        the caller, not in a worker.  Returns the worker index.
        """
        message.payload_bytes()
        return self._dispatcher.add(message)

    def get_queue(self, empty: bool = True) -> list[Message]:
        """Messages not yet picked up by any worker, in worker order."""
        return self._queues.collect(empty)

    def get_errors(self, empty: bool = True) -> list[QueuedNotification]:
        """Notifications the workers gave up on."""
        return self._queues.collect_errors(empty)

    # ------------------------------------------------------------------
    # Worker process
    # ------------------------------------------------------------------

    def _worker_main(self, index: int) -> None:
        cancel = CancellationToken()
        self._install_worker_handlers(cancel)

        engine = self._engine_factory()
        try:
            engine.connect()
        except GatewayConnectionError as exc:
            self._log.log(f"ERROR: {exc}, exiting...")
            sys.exit(1)

        worker = FanoutWorker(
            index,
            self._queues,
            engine,
            parent_pid=self._parent_pid,
            cancel=cancel,
            poll_interval=self._config.main_loop_interval,
            log=self._log,
        )
        try:
            worker.run()
        finally:
            engine.disconnect()

    @staticmethod
    def _install_worker_handlers(cancel: CancellationToken) -> None:
        signal.signal(signal.SIGCHLD, signal.SIG_DFL)

        def _on_termination(signum: int, frame: FrameType | None) -> None:
            cancel.cancel(f"signal #{signum}")

        for signum in TERMINATION_SIGNALS:
            signal.signal(signum, _on_termination)

    # ------------------------------------------------------------------
    # Parent signal handling
    # ------------------------------------------------------------------

    def _install_parent_handlers(self) -> None:
        signal.signal(signal.SIGCHLD, self._on_child_exited)
        for signum in TERMINATION_SIGNALS:
            signal.signal(signum, self._on_signal)

    def _on_child_exited(self, signum: int, frame: FrameType | None) -> None:
        self._child_exited = True

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        self._pending_signals.append(signum)

    def _reap_children(self) -> None:
        for process in self._workers:
            pid = process.pid
            if pid is None or pid in self._reaped:
                continue
            # is_alive() waits on the child without blocking.
            if not process.is_alive():
                self._reaped.add(pid)
                self._running -= 1
                logger.debug("Reaped %s, %d still running", process.name, self._running)
                self._log.log(
                    f"INFO: Process PID {pid} exited with code {process.exitcode}."
                )

    def _on_shutdown(self) -> None:
        if os.getpid() != self._parent_pid:
            return
        if self._started:
            self.stop()
            self.join(SHUTDOWN_JOIN_TIMEOUT)
        if self._manager is not None:
            self._log.log("INFO: Parent shutdown, cleaning memory...")
            self._manager.shutdown()
            self._manager = None
        atexit.unregister(self._on_shutdown)

    def __repr__(self) -> str:
        return (
            f"FanoutServer(processes={self._config.processes}, "
            f"running={self._running}, started={self._started})"
        )
