"""The raw-stream protocol the delivery engine and feedback reader consume."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class GatewayStream(Protocol):
    """Protocol for a connected gateway socket.

    ``GatewayConnection`` is the production implementation; tests provide
    in-memory fakes.
    """

    @property
    def is_connected(self) -> bool:
        ...

    def connect(self) -> None:
        ...

    def disconnect(self) -> bool:
        ...

    def write(self, data: bytes) -> int:
        """Return the number of bytes actually written."""
        ...

    def read(self, size: int) -> bytes | None:
        """Return ``None`` when nothing is available, ``b""`` at end of stream."""
        ...

    def poll(self, timeout: float) -> bool:
        """Wait for read readiness; raise ``OSError`` if waiting fails."""
        ...
