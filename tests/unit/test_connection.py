"""Unit tests for GatewayConnection — retry loop and raw non-blocking I/O.

The TLS handshake is replaced by a local socket pair; everything above
``_open_socket`` runs for real.
"""

from __future__ import annotations

import socket
from collections.abc import Iterator

import pytest

from pushgate.config import PushgateConfig
from pushgate.errors import ConfigurationError, GatewayConnectionError
from pushgate.models.endpoints import Service
from pushgate.transport import GatewayConnection, GatewayStream


@pytest.fixture
def pair() -> Iterator[tuple[socket.socket, socket.socket]]:
    """A connected local socket pair standing in for the TLS stream."""
    ours, theirs = socket.socketpair()
    yield ours, theirs
    for s in (ours, theirs):
        s.close()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def connection(config: PushgateConfig, sink, sleeps) -> GatewayConnection:
    return GatewayConnection(config, log=sink, sleep=sleeps.append)


# ---------------------------------------------------------------------------
# Test: construction
# ---------------------------------------------------------------------------


class TestConstruction:
    """Credential checks and endpoint resolution."""

    def test_requires_credentials(self):
        """A connection without a certificate cannot be built."""
        with pytest.raises(ConfigurationError):
            GatewayConnection(PushgateConfig())

    def test_url_per_service(self, config: PushgateConfig):
        """Push and feedback resolve to their own sandbox endpoints."""
        assert GatewayConnection(config).url == "ssl://gateway.sandbox.push.apple.com:2195"
        feedback = GatewayConnection(config, Service.FEEDBACK)
        assert feedback.url == "ssl://feedback.sandbox.push.apple.com:2196"
        assert feedback.service == Service.FEEDBACK

    def test_is_a_gateway_stream(self, connection: GatewayConnection):
        assert isinstance(connection, GatewayStream)
        assert not connection.is_connected


# ---------------------------------------------------------------------------
# Test: connect and retry
# ---------------------------------------------------------------------------


class TestConnectRetry:
    """The fixed-backoff connect loop."""

    def test_succeeds_after_failures(self, connection, monkeypatch, pair, sink, sleeps):
        """Two refusals then a success: two sleeps, two retry lines."""
        attempts = []

        def _open():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionRefusedError("refused")
            return pair[0]

        monkeypatch.setattr(connection, "_open_socket", _open)
        connection.connect()

        assert connection.is_connected
        assert len(attempts) == 3
        assert sleeps == [connection.config.connect_retry_interval] * 2
        assert sink.contains("INFO: Retry to connect (1/3)...")
        assert sink.contains("INFO: Retry to connect (2/3)...")
        assert sink.contains("INFO: Connected to ssl://")

    def test_gives_up_after_retry_budget(self, connection, monkeypatch, sink, sleeps):
        """Every attempt fails: the error surfaces after retry_times + 1 tries."""
        attempts = []

        def _open():
            attempts.append(1)
            raise OSError("unreachable")

        monkeypatch.setattr(connection, "_open_socket", _open)
        with pytest.raises(GatewayConnectionError, match="Unable to connect"):
            connection.connect()

        assert len(attempts) == connection.config.connect_retry_times + 1
        assert len(sleeps) == connection.config.connect_retry_times
        assert not connection.is_connected
        assert sum(m.startswith("ERROR:") for m in sink.messages) == len(attempts)

    def test_no_retries(self, config, monkeypatch, sleeps):
        conn = GatewayConnection(
            config.model_copy(update={"connect_retry_times": 0}), sleep=sleeps.append
        )

        def _open():
            raise OSError("unreachable")

        monkeypatch.setattr(conn, "_open_socket", _open)
        with pytest.raises(GatewayConnectionError):
            conn.connect()
        assert sleeps == []

    def test_connect_when_open_keeps_socket(self, connection, monkeypatch, pair, sink):
        """A second connect() neither opens nor replaces the socket."""
        opened = []

        def _open():
            opened.append(1)
            return pair[0]

        monkeypatch.setattr(connection, "_open_socket", _open)
        connection.connect()
        connection.connect()

        assert opened == [1]
        assert connection._socket is pair[0]
        assert sum(m.startswith("INFO: Trying") for m in sink.messages) == 1


# ---------------------------------------------------------------------------
# Test: raw non-blocking I/O
# ---------------------------------------------------------------------------


class TestRawIO:
    """write/read/poll on a connected socket pair."""

    @pytest.fixture
    def connected(self, connection, monkeypatch, pair) -> GatewayConnection:
        monkeypatch.setattr(connection, "_open_socket", lambda: pair[0])
        connection.connect()
        return connection

    def test_write(self, connected, pair):
        assert connected.write(b"frame") == 5
        assert pair[1].recv(16) == b"frame"

    def test_read_nothing_yet(self, connected):
        """An idle socket reads as None, not as end of stream."""
        assert connected.read(6) is None
        assert connected.poll(0) is False

    def test_poll_then_read(self, connected, pair):
        pair[1].sendall(b"\x08\x08\x00\x00\x00\x03")
        assert connected.poll(1.0) is True
        assert connected.read(6) == b"\x08\x08\x00\x00\x00\x03"

    def test_end_of_stream(self, connected, pair):
        """A closed peer is readable and reads as b''."""
        pair[1].close()
        assert connected.poll(1.0) is True
        assert connected.read(6) == b""

    def test_disconnect_is_idempotent(self, connected, sink):
        assert connected.disconnect() is True
        assert connected.disconnect() is False
        assert sink.contains("INFO: Disconnected.")

    def test_io_when_disconnected(self, connection):
        """Without a socket writes are short, reads hit EOF and poll raises."""
        assert connection.write(b"x") == 0
        assert connection.read(6) == b""
        with pytest.raises(OSError):
            connection.poll(0)

    def test_context_manager(self, connection, monkeypatch, pair):
        monkeypatch.setattr(connection, "_open_socket", lambda: pair[0])
        with connection as conn:
            assert conn.is_connected
        assert not connection.is_connected
