"""Feedback reader — drains the feedback service stream.

The feedback service pushes 38-byte tuples for devices that no longer
accept notifications, then closes the stream.  Reading is destructive on
the gateway side: a tuple is delivered once.
"""

from __future__ import annotations

from pushgate.config import PushgateConfig
from pushgate.logs import LoggingSink, LogSink
from pushgate.models.endpoints import Service
from pushgate.models.feedback import FeedbackTuple
from pushgate.transport.connection import GatewayConnection
from pushgate.transport.stream import GatewayStream
from pushgate.wire.codec import split_feedback_tuples

READ_CHUNK_SIZE = 8192


class FeedbackReader:
    """Collects feedback tuples from one feedback connection.

    Parameters
    ----------
    connection:
        A stream connected (or connectable) to the feedback service.
    config:
        Supplies ``socket_select_timeout`` for the wait between reads.
    log:
        Log sink; defaults to the connection's sink when it has one.
    """

    def __init__(
        self,
        connection: GatewayStream,
        config: PushgateConfig | None = None,
        *,
        log: LogSink | None = None,
    ) -> None:
        self._connection = connection
        self._config = config or PushgateConfig()
        self._log = log or getattr(connection, "log", None) or LoggingSink()

    @classmethod
    def from_config(
        cls, config: PushgateConfig, *, log: LogSink | None = None
    ) -> FeedbackReader:
        """Build a reader on a fresh feedback-service ``GatewayConnection``."""
        connection = GatewayConnection(config, Service.FEEDBACK, log=log)
        return cls(connection, config, log=log)

    def connect(self) -> None:
        self._connection.connect()

    def disconnect(self) -> bool:
        return self._connection.disconnect()

    def receive(self) -> list[FeedbackTuple]:
        """Read until end of stream and return every tuple, in order.

        Stops early, returning what was collected, if waiting for the
        socket fails.
        """
        feedback: list[FeedbackTuple] = []
        buffer = b""
        while True:
            self._log.log("INFO: Reading...")
            chunk = self._connection.read(READ_CHUNK_SIZE)
            if chunk:
                self._log.log(f"INFO: {len(chunk)} bytes read.")
                buffer += chunk
                tuples, buffer = split_feedback_tuples(buffer)
                for item in tuples:
                    feedback.append(item)
                    self._log_tuple(item)
            elif chunk is not None:
                break

            try:
                self._connection.poll(self._config.socket_select_timeout)
            except OSError:
                self._log.log("WARNING: Unable to wait for a stream availability.")
                break

        if buffer:
            self._log.log(
                f"WARNING: {len(buffer)} trailing bytes discarded at end of stream."
            )
        return feedback

    def _log_tuple(self, item: FeedbackTuple) -> None:
        self._log.log(
            f"INFO: New feedback tuple: timestamp={item.timestamp} "
            f"({item.received_at:%Y-%m-%d %H:%M:%S}), tokenLength={item.token_length}, "
            f"deviceToken={item.device_token}."
        )
