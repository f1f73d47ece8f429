"""Shared test fixtures for pushgate."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from pushgate.config import PushgateConfig
from pushgate.errors import GatewayConnectionError
from pushgate.message import Message
from pushgate.push.engine import PushEngine
from pushgate.wire.codec import (
    NotificationFrame,
    decode_notification,
    encode_error_response,
)


def make_token(n: int) -> str:
    """A valid 64-hex device token derived from *n*."""
    return f"{n:064x}"


class RecordingSink:
    """Log sink that keeps every message."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)

    def contains(self, fragment: str) -> bool:
        return any(fragment in m for m in self.messages)


class FakeGateway:
    """In-memory push gateway implementing the ``GatewayStream`` protocol.

    Every written frame is decoded and kept in ``frames``.  ``reject`` maps
    a sequence id to the status code the gateway answers with after that
    frame is written; by default each rejection fires once, with
    ``persistent=True`` it fires on every write.  ``deferred`` bytes only
    become readable on a poll with a positive timeout, which is how the
    engine's final end-of-run check sees a late error frame.  ``on_write``
    is called with each decoded frame after it is recorded.
    """

    def __init__(
        self,
        *,
        reject: dict[int, int] | None = None,
        persistent: bool = False,
        short_writes: set[int] | None = None,
        connected: bool = True,
    ) -> None:
        self.reject = dict(reject or {})
        self.persistent = persistent
        self.short_writes = set(short_writes or ())
        self.frames: list[NotificationFrame] = []
        self.readable = b""
        self.deferred = b""
        self.fail_wait = False
        self.fail_connect = False
        self.on_write: Callable[[NotificationFrame], None] | None = None
        self.connects = 0
        self.disconnects = 0
        self._connected = connected

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def written_ids(self) -> list[int]:
        return [f.sequence_id for f in self.frames]

    def connect(self) -> None:
        if self.fail_connect:
            raise GatewayConnectionError("Unable to connect to 'ssl://fake:2195'")
        self.connects += 1
        self._connected = True

    def disconnect(self) -> bool:
        if not self._connected:
            return False
        self._connected = False
        self.disconnects += 1
        return True

    def write(self, data: bytes) -> int:
        frame = decode_notification(data)
        self.frames.append(frame)
        if self.on_write is not None:
            self.on_write(frame)
        if frame.sequence_id in self.short_writes:
            self.short_writes.discard(frame.sequence_id)
            return len(data) - 1
        if self.persistent:
            code = self.reject.get(frame.sequence_id)
        else:
            code = self.reject.pop(frame.sequence_id, None)
        if code is not None:
            self.readable += encode_error_response(code, frame.sequence_id)
        return len(data)

    def read(self, size: int) -> bytes | None:
        if not self.readable:
            return None
        chunk, self.readable = self.readable[:size], self.readable[size:]
        return chunk

    def poll(self, timeout: float) -> bool:
        if timeout > 0:
            if self.fail_wait:
                raise OSError("select failed")
            if self.deferred:
                self.readable += self.deferred
                self.deferred = b""
        return bool(self.readable)


@pytest.fixture
def cert_file(tmp_path: Path) -> Path:
    """A readable placeholder provider certificate."""
    path = tmp_path / "provider.pem"
    path.write_text("-----BEGIN CERTIFICATE-----\n-----END CERTIFICATE-----\n")
    return path


@pytest.fixture
def config(cert_file: Path) -> PushgateConfig:
    """Settings with every wait shortened for tests."""
    return PushgateConfig(
        certificate_path=cert_file,
        connect_retry_interval=0,
        write_interval=0,
        socket_select_timeout=0.5,
        main_loop_interval=0.01,
    )


@pytest.fixture
def sink() -> RecordingSink:
    """A log sink that records every message."""
    return RecordingSink()


@pytest.fixture
def token() -> Callable[[int], str]:
    """Device token factory, see ``make_token``."""
    return make_token


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    """Factory for ``FakeGateway`` instances."""
    return FakeGateway


@pytest.fixture
def make_engine(
    config: PushgateConfig, sink: RecordingSink
) -> Callable[..., PushEngine]:
    """Build a ``PushEngine`` on a gateway with a no-op sleep."""

    def _make(gateway: FakeGateway, **overrides: Any) -> PushEngine:
        cfg = config.model_copy(update=overrides) if overrides else config
        return PushEngine(gateway, cfg, log=sink, sleep=lambda _s: None)

    return _make


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Build a message for *count* recipients."""

    def _make(count: int = 1, *, start: int = 1, **kwargs: Any) -> Message:
        kwargs.setdefault("text", "hello")
        message = Message(**kwargs)
        for n in range(start, start + count):
            message.add_recipient(make_token(n))
        return message

    return _make
