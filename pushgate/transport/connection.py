"""Connection manager — one TLS socket to a gateway endpoint.

``GatewayConnection`` resolves the endpoint for the configured environment
and service, performs the TLS handshake with the provider certificate,
retries with a fixed backoff, and exposes raw non-blocking I/O to the
delivery engine and the feedback reader.

Once connected the socket is non-blocking and unbuffered: ``write()``
reports how many bytes actually went out instead of raising, ``read()``
distinguishes "nothing yet" (``None``) from end of stream (``b""``), and
``poll()`` waits a bounded time for read readiness.
"""

from __future__ import annotations

import logging
import select
import socket
import ssl
import time
from collections.abc import Callable
from typing import Any

from pushgate.config import PushgateConfig
from pushgate.errors import GatewayConnectionError
from pushgate.logs import LoggingSink, LogSink
from pushgate.models.endpoints import Service

logger = logging.getLogger(__name__)

_WOULD_BLOCK = (ssl.SSLWantReadError, ssl.SSLWantWriteError, BlockingIOError)


class GatewayConnection:
    """A TLS stream to the push or feedback service.

    Parameters
    ----------
    config:
        Credentials, environment and retry settings.  The certificate (and
        CA file, when set) must be readable; checked here, not at connect.
    service:
        ``Service.PUSH`` for the notification gateway, ``Service.FEEDBACK``
        for the feedback stream.
    log:
        Log sink for attempts, retries and failures.
    sleep:
        Sleep function used between connect attempts.

    Raises
    ------
    ConfigurationError
        If the credentials cannot be read or the environment is unknown.
    """

    def __init__(
        self,
        config: PushgateConfig,
        service: Service = Service.PUSH,
        *,
        log: LogSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        config.require_credentials()
        self._config = config
        self._service = service
        self._host, self._port = config.endpoint(service)
        self._log = log or LoggingSink()
        self._sleep = sleep
        self._socket: socket.socket | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> PushgateConfig:
        return self._config

    @property
    def service(self) -> Service:
        return self._service

    @property
    def url(self) -> str:
        return f"ssl://{self._host}:{self._port}"

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    @property
    def log(self) -> LogSink:
        return self._log

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Connect, retrying ``connect_retry_times`` times.

        Does nothing when the connection is already open.

        Raises
        ------
        GatewayConnectionError
            After the last attempt fails.
        """
        if self._socket is not None:
            return
        retry_times = self._config.connect_retry_times
        retry = 0
        while True:
            try:
                self._connect()
                return
            except GatewayConnectionError as exc:
                self._log.log(f"ERROR: {exc}")
                if retry >= retry_times:
                    raise
                self._log.log(f"INFO: Retry to connect ({retry + 1}/{retry_times})...")
                self._sleep(self._config.connect_retry_interval)
            retry += 1

    def disconnect(self) -> bool:
        """Close the socket if open.  Returns whether a close happened."""
        if self._socket is None:
            return False
        self._log.log("INFO: Disconnected.")
        try:
            self._socket.close()
        finally:
            self._socket = None
        return True

    def _connect(self) -> None:
        self._log.log(f"INFO: Trying {self.url}...")
        try:
            sock = self._open_socket()
        except OSError as exc:
            raise GatewayConnectionError(
                f"Unable to connect to '{self.url}': {exc}"
            ) from exc
        sock.setblocking(False)
        self._socket = sock
        self._log.log(f"INFO: Connected to {self.url}.")

    def _open_socket(self) -> socket.socket:
        """Open the TCP connection and complete the TLS handshake."""
        context = self._ssl_context()
        raw = socket.create_connection(
            (self._host, self._port), timeout=self._config.connect_timeout
        )
        try:
            return context.wrap_socket(raw, server_hostname=self._host)
        except BaseException:
            raw.close()
            raise

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        logger.debug(
            "TLS context for %s: certificate=%s ca_file=%s",
            self.url,
            self._config.certificate_path,
            self._config.ca_file,
        )
        if self._config.ca_file is not None:
            context.load_verify_locations(cafile=str(self._config.ca_file))
        else:
            context.load_default_certs(ssl.Purpose.SERVER_AUTH)
        context.load_cert_chain(
            certfile=str(self._config.certificate_path),
            password=self._config.certificate_passphrase or None,
        )
        return context

    # ------------------------------------------------------------------
    # Raw I/O
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> int:
        """Write *data* and return the number of bytes actually written.

        Socket errors are logged and reflected in a short count, never raised.
        """
        if self._socket is None:
            return 0
        view = memoryview(data)
        written = 0
        while written < len(view):
            try:
                sent = self._socket.send(view[written:])
            except _WOULD_BLOCK:
                if not self._wait_writable():
                    break
                continue
            except OSError as exc:
                self._log.log(f"ERROR: Write to {self.url} failed: {exc}")
                break
            if sent == 0:
                break
            written += sent
        return written

    def read(self, size: int) -> bytes | None:
        """Read up to *size* bytes.

        Returns ``None`` when nothing is available yet and ``b""`` at end of
        stream (including a connection reset).
        """
        if self._socket is None:
            return b""
        try:
            return self._socket.recv(size)
        except _WOULD_BLOCK:
            return None
        except OSError as exc:
            self._log.log(f"WARNING: Read from {self.url} failed: {exc}")
            return b""

    def poll(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for the socket to become readable.

        Raises
        ------
        OSError
            If the wait itself fails (closed socket, bad descriptor).
        """
        sock = self._socket
        if sock is None:
            raise OSError("Not connected")
        if isinstance(sock, ssl.SSLSocket) and sock.pending():
            return True
        try:
            readable, _, _ = select.select([sock], [], [], timeout)
        except ValueError as exc:
            raise OSError(str(exc)) from exc
        return bool(readable)

    def _wait_writable(self) -> bool:
        try:
            _, writable, _ = select.select(
                [], [self._socket], [], self._config.socket_select_timeout
            )
        except (OSError, ValueError):
            return False
        return bool(writable)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> GatewayConnection:
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"GatewayConnection(url={self.url!r}, {state})"
