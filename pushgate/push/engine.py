"""Delivery engine — pipelined sends reconciled against delayed error frames.

The binary protocol never acknowledges a notification.  The gateway only
reports a failure, tagged with the sequence id of the offending frame,
and then closes the connection.  By the time that report arrives any
number of later frames may already be on the wire.

``PushEngine`` therefore writes ahead and reconciles after every write:

- everything queued *before* the failing id was accepted and is dropped;
- the failing entry records the error and stays queued;
- everything *after* it is unconfirmed and is written again on the next run.

An entry whose recorded error is a client rejection (codes 2-8), or that
has failed ``send_retry_times`` times, moves to the error container.
Nothing here raises for a per-message failure; ``send()`` only raises
when it cannot start at all.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from pushgate.config import PushgateConfig
from pushgate.errors import EmptyQueueError, NotConnectedError
from pushgate.logs import LoggingSink, LogSink
from pushgate.models.endpoints import Service
from pushgate.models.notification import (
    STATUS_CODE_INTERNAL_ERROR,
    ErrorResponse,
    QueuedNotification,
    status_message,
)
from pushgate.transport.connection import GatewayConnection
from pushgate.transport.stream import GatewayStream
from pushgate.wire.codec import (
    ERROR_RESPONSE_SIZE,
    decode_error_response,
    encode_notification,
)

if TYPE_CHECKING:
    from pushgate.message import Message

MAX_SEQUENCE_ID = 0xFFFFFFFF


class PushEngine:
    """Owns a delivery queue and an error container for one connection.

    Parameters
    ----------
    connection:
        The gateway stream to write to and read error frames from.
    config:
        Retry limits and intervals.  Defaults to ``PushgateConfig()``.
    log:
        Log sink; defaults to the connection's sink when it has one.
    sleep:
        Sleep function for the per-write throttle.
    should_stop:
        Polled before every write and every run; once it returns ``True``
        ``send()`` returns with the unsent entries left queued.
    """

    def __init__(
        self,
        connection: GatewayStream,
        config: PushgateConfig | None = None,
        *,
        log: LogSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self._connection = connection
        self._config = config or PushgateConfig()
        self._log = log or getattr(connection, "log", None) or LoggingSink()
        self._sleep = sleep
        self.should_stop = should_stop

        # sequence_id -> entry, insertion order == sequence order
        self._queue: dict[int, QueuedNotification] = {}
        self._errors: dict[int, QueuedNotification] = {}
        self._next_id = 1

    @classmethod
    def from_config(
        cls, config: PushgateConfig, *, log: LogSink | None = None
    ) -> PushEngine:
        """Build an engine on a fresh push-service ``GatewayConnection``."""
        connection = GatewayConnection(config, Service.PUSH, log=log)
        return cls(connection, config, log=log)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @property
    def connection(self) -> GatewayStream:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    def connect(self) -> None:
        self._connection.connect()

    def disconnect(self) -> bool:
        return self._connection.disconnect()

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(self, message: Message) -> list[int]:
        """Queue one notification per recipient of *message*.

        Returns the sequence ids assigned, in order.
        """
        payload = message.payload_bytes()
        custom = message.custom_identifier
        ids: list[int] = []
        for index in range(message.recipient_count()):
            sequence_id = self._allocate_id()
            self._queue[sequence_id] = QueuedNotification(
                sequence_id=sequence_id,
                device_token=message.recipient_at(index),
                payload=payload,
                expiry=message.expiry,
                priority=message.priority,
                custom_identifier=None if custom is None else str(custom),
            )
            ids.append(sequence_id)
        return ids

    def get_queue(self, empty: bool = True) -> dict[int, QueuedNotification]:
        """Snapshot the pending queue, clearing it unless *empty* is False."""
        snapshot = dict(self._queue)
        if empty:
            self._queue.clear()
        return snapshot

    def get_errors(self, empty: bool = True) -> dict[int, QueuedNotification]:
        """Snapshot the permanently failed entries, clearing them unless *empty* is False."""
        snapshot = dict(self._errors)
        if empty:
            self._errors.clear()
        return snapshot

    def _allocate_id(self) -> int:
        sequence_id = self._next_id
        self._next_id = 1 if sequence_id >= MAX_SEQUENCE_ID else sequence_id + 1
        return sequence_id

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def send(self) -> None:
        """Deliver the queue, run after run, until it is empty.

        Raises
        ------
        NotConnectedError
            If the connection is not open.
        EmptyQueueError
            If nothing is queued.
        GatewayConnectionError
            If reconnecting after an error frame fails.
        """
        if not self._connection.is_connected:
            raise NotConnectedError("Not connected to Push Notification Service")
        if not self._queue:
            raise EmptyQueueError("No notifications queued to be sent")

        run = 1
        while self._queue:
            if self._stop_requested():
                break
            self._log.log(
                f"INFO: Sending messages queue, run #{run}: "
                f"{len(self._queue)} message(s) left in queue."
            )
            error = self._send_run()
            if self._stop_requested():
                break

            if not error and self._queue:
                # An error for the last frames may only show up now.
                try:
                    ready = self._connection.poll(self._config.socket_select_timeout)
                except OSError:
                    self._log.log("ERROR: Unable to wait for a stream availability.")
                    break
                if not ready or not self._update_queue():
                    self._queue.clear()

            run += 1

    def _send_run(self) -> bool:
        """One pass over the queue.  Returns ``True`` if an error ended it."""
        for sequence_id, entry in list(self._queue.items()):
            if self.should_stop is not None and self.should_stop():
                # send() logs the stop and leaves the rest queued.
                return False
            if self._resolve_recorded_errors(entry):
                continue

            frame = encode_notification(
                entry.device_token,
                entry.payload,
                sequence_id,
                entry.expiry,
                entry.priority,
            )
            self._log.log(
                f"STATUS: Sending message ID {sequence_id} {entry.label} "
                f"({len(entry.errors) + 1}/{self._config.send_retry_times}): "
                f"{len(frame)} bytes."
            )

            write_error: ErrorResponse | None = None
            written = self._connection.write(frame)
            if written != len(frame):
                write_error = ErrorResponse(
                    status_code=STATUS_CODE_INTERNAL_ERROR,
                    sequence_id=sequence_id,
                    status_message=(
                        f"{status_message(STATUS_CODE_INTERNAL_ERROR)} "
                        f"({written} bytes written instead of {len(frame)} bytes)"
                    ),
                )
            self._sleep(self._config.write_interval)

            if self._update_queue(write_error):
                return True
        return False

    def _stop_requested(self) -> bool:
        if self.should_stop is None or not self.should_stop():
            return False
        self._log.log(
            f"INFO: Stop requested, {len(self._queue)} message(s) left in queue."
        )
        return True

    def _resolve_recorded_errors(self, entry: QueuedNotification) -> bool:
        """Settle *entry* from its history.  Returns ``True`` if it left the queue."""
        sequence_id = entry.sequence_id
        for error in entry.errors:
            if error.is_success:
                self._log.log(
                    f"INFO: Message ID {sequence_id} {entry.label} has no error "
                    f"({error.status_code}), removing from queue..."
                )
                self._remove(sequence_id)
                return True
            if error.is_client_rejection:
                self._log.log(
                    f"WARNING: Message ID {sequence_id} {entry.label} has an "
                    f"unrecoverable error ({error.status_code}), removing from "
                    "queue without retrying..."
                )
                self._remove(sequence_id, failed=True)
                return True

        if len(entry.errors) >= self._config.send_retry_times:
            self._log.log(
                f"WARNING: Message ID {sequence_id} {entry.label} has "
                f"{len(entry.errors)} errors, removing from queue..."
            )
            self._remove(sequence_id, failed=True)
            return True
        return False

    def _remove(self, sequence_id: int, *, failed: bool = False) -> None:
        entry = self._queue.pop(sequence_id)
        if failed:
            self._errors[sequence_id] = entry

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _update_queue(
        self, write_error: ErrorResponse | None = None, timeout: float = 0.0
    ) -> bool:
        """Reconcile the queue against a write error and/or an error frame.

        Returns ``True`` if an error was observed (and the connection was
        re-established), ``False`` if everything is clean.
        """
        stream_error = self._read_error_response(timeout)
        if write_error is None and stream_error is None:
            return False

        # The earlier failure is authoritative; the stream wins a tie.
        if stream_error is not None and (
            write_error is None or stream_error.sequence_id <= write_error.sequence_id
        ):
            error = stream_error
        else:
            error = write_error

        self._log.log(
            f"ERROR: Unable to send message ID {error.sequence_id}: "
            f"{error.status_message} ({error.status_code})."
        )

        self._connection.disconnect()

        for sequence_id in list(self._queue):
            if sequence_id < error.sequence_id:
                # Accepted by the gateway before the failure point.
                del self._queue[sequence_id]
            elif sequence_id == error.sequence_id:
                self._queue[sequence_id] = self._queue[sequence_id].with_error(error)
            else:
                break

        self._connection.connect()
        return True

    def _read_error_response(self, timeout: float) -> ErrorResponse | None:
        try:
            if not self._connection.poll(timeout):
                return None
        except OSError:
            return None
        return decode_error_response(self._connection.read(ERROR_RESPONSE_SIZE))

    def __repr__(self) -> str:
        return (
            f"PushEngine(queued={len(self._queue)}, errors={len(self._errors)}, "
            f"connected={self.is_connected})"
        )
