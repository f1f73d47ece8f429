"""Binary codec for the legacy push protocol.

Three big-endian structures:

Notification frame (command 2)::

    byte    command = 2
    uint32  frame_length              # length of the five items below
      byte 1, uint16 32, token        # binary form of the hex token
      byte 2, uint16 N,  payload      # UTF-8 JSON
      byte 3, uint16 4,  uint32 sequence id
      byte 4, uint16 4,  uint32 expiry (0 = do not store)
      byte 5, uint16 1,  byte priority (5 or 10)

Error response (6 bytes)::

    byte command = 8, byte status_code, uint32 sequence_id

Feedback tuple (38 bytes)::

    uint32 timestamp, uint16 token_length, 32 bytes device token

All functions are pure.
"""

from __future__ import annotations

import struct
from typing import NamedTuple

from pushgate.errors import ProtocolDecodeError
from pushgate.models.feedback import FeedbackTuple
from pushgate.models.notification import (
    ERROR_RESPONSE_COMMAND,
    ErrorResponse,
    Priority,
)

COMMAND_PUSH = 2
DEVICE_BINARY_SIZE = 32
ERROR_RESPONSE_SIZE = 6
FEEDBACK_TUPLE_SIZE = 4 + 2 + DEVICE_BINARY_SIZE

ITEM_DEVICE_TOKEN = 1
ITEM_PAYLOAD = 2
ITEM_IDENTIFIER = 3
ITEM_EXPIRY = 4
ITEM_PRIORITY = 5

_FRAME_HEADER = struct.Struct(">BI")
_ITEM_HEADER = struct.Struct(">BH")
_ERROR_RESPONSE = struct.Struct(">BBI")
_FEEDBACK_HEADER = struct.Struct(">IH")


class NotificationFrame(NamedTuple):
    """A decoded notification frame."""

    frame_length: int
    device_token: str
    payload: bytes
    sequence_id: int
    expiry: int
    priority: int


# ---------------------------------------------------------------------------
# Notification frame
# ---------------------------------------------------------------------------


def encode_notification(
    device_token: str,
    payload: bytes,
    sequence_id: int,
    expiry: int = 0,
    priority: int = Priority.IMMEDIATE,
) -> bytes:
    """Encode one notification into a command-2 frame."""
    token = bytes.fromhex(device_token)
    items = b"".join(
        (
            _ITEM_HEADER.pack(ITEM_DEVICE_TOKEN, len(token)),
            token,
            _ITEM_HEADER.pack(ITEM_PAYLOAD, len(payload)),
            payload,
            _ITEM_HEADER.pack(ITEM_IDENTIFIER, 4),
            struct.pack(">I", sequence_id),
            _ITEM_HEADER.pack(ITEM_EXPIRY, 4),
            struct.pack(">I", expiry),
            _ITEM_HEADER.pack(ITEM_PRIORITY, 1),
            struct.pack(">B", int(priority)),
        )
    )
    return _FRAME_HEADER.pack(COMMAND_PUSH, len(items)) + items


def decode_notification(frame: bytes) -> NotificationFrame:
    """Parse a command-2 frame back into its items.

    Raises
    ------
    ProtocolDecodeError
        On a wrong command byte, a length mismatch, a truncated item or a
        missing item.
    """
    if len(frame) < _FRAME_HEADER.size:
        raise ProtocolDecodeError(f"Frame too short: {len(frame)} bytes")
    command, frame_length = _FRAME_HEADER.unpack_from(frame)
    if command != COMMAND_PUSH:
        raise ProtocolDecodeError(f"Unexpected command {command}")
    body = frame[_FRAME_HEADER.size:]
    if len(body) != frame_length:
        raise ProtocolDecodeError(
            f"Frame length {frame_length} does not match {len(body)} item bytes"
        )

    items: dict[int, bytes] = {}
    offset = 0
    while offset < len(body):
        if offset + _ITEM_HEADER.size > len(body):
            raise ProtocolDecodeError("Truncated item header")
        item_id, length = _ITEM_HEADER.unpack_from(body, offset)
        offset += _ITEM_HEADER.size
        if offset + length > len(body):
            raise ProtocolDecodeError(f"Truncated item {item_id}")
        items[item_id] = body[offset:offset + length]
        offset += length

    missing = {
        ITEM_DEVICE_TOKEN, ITEM_PAYLOAD, ITEM_IDENTIFIER, ITEM_EXPIRY, ITEM_PRIORITY
    } - items.keys()
    if missing:
        raise ProtocolDecodeError(f"Missing items {sorted(missing)}")

    try:
        (sequence_id,) = struct.unpack(">I", items[ITEM_IDENTIFIER])
        (expiry,) = struct.unpack(">I", items[ITEM_EXPIRY])
        (priority,) = struct.unpack(">B", items[ITEM_PRIORITY])
    except struct.error as exc:
        raise ProtocolDecodeError(f"Malformed fixed-size item: {exc}") from exc

    return NotificationFrame(
        frame_length=frame_length,
        device_token=items[ITEM_DEVICE_TOKEN].hex(),
        payload=items[ITEM_PAYLOAD],
        sequence_id=sequence_id,
        expiry=expiry,
        priority=priority,
    )


# ---------------------------------------------------------------------------
# Error response
# ---------------------------------------------------------------------------


def encode_error_response(status_code: int, sequence_id: int) -> bytes:
    """Build the 6-byte frame the gateway sends on failure."""
    return _ERROR_RESPONSE.pack(ERROR_RESPONSE_COMMAND, status_code, sequence_id)


def parse_error_response(data: bytes) -> ErrorResponse:
    """Strictly decode an error-response frame.

    Raises
    ------
    ProtocolDecodeError
        If fewer than 6 bytes are given or the command byte is not 8.
    """
    if data is None or len(data) < ERROR_RESPONSE_SIZE:
        raise ProtocolDecodeError(
            f"Error response needs {ERROR_RESPONSE_SIZE} bytes, "
            f"got {0 if data is None else len(data)}"
        )
    command, status_code, sequence_id = _ERROR_RESPONSE.unpack_from(data)
    if command != ERROR_RESPONSE_COMMAND:
        raise ProtocolDecodeError(f"Unexpected error response command {command}")
    return ErrorResponse(
        command=command, status_code=status_code, sequence_id=sequence_id
    )


def decode_error_response(data: bytes | None) -> ErrorResponse | None:
    """Decode an error-response frame, or return ``None`` for "no error"."""
    try:
        return parse_error_response(data)
    except ProtocolDecodeError:
        return None


# ---------------------------------------------------------------------------
# Feedback tuples
# ---------------------------------------------------------------------------


def encode_feedback_tuple(timestamp: int, device_token: str) -> bytes:
    token = bytes.fromhex(device_token)
    return _FEEDBACK_HEADER.pack(timestamp, len(token)) + token


def decode_feedback_tuple(data: bytes) -> FeedbackTuple:
    """Decode one 38-byte feedback tuple.

    Raises
    ------
    ProtocolDecodeError
        If fewer than 38 bytes are given.
    """
    if len(data) < FEEDBACK_TUPLE_SIZE:
        raise ProtocolDecodeError(
            f"Feedback tuple needs {FEEDBACK_TUPLE_SIZE} bytes, got {len(data)}"
        )
    timestamp, token_length = _FEEDBACK_HEADER.unpack_from(data)
    token = data[_FEEDBACK_HEADER.size:FEEDBACK_TUPLE_SIZE]
    return FeedbackTuple(
        timestamp=timestamp, token_length=token_length, device_token=token.hex()
    )


def split_feedback_tuples(buffer: bytes) -> tuple[list[FeedbackTuple], bytes]:
    """Greedily decode every complete tuple in *buffer*.

    Returns the decoded tuples in order and the unconsumed remainder.
    """
    count = len(buffer) // FEEDBACK_TUPLE_SIZE
    tuples = [
        decode_feedback_tuple(buffer[i * FEEDBACK_TUPLE_SIZE:(i + 1) * FEEDBACK_TUPLE_SIZE])
        for i in range(count)
    ]
    return tuples, buffer[count * FEEDBACK_TUPLE_SIZE:]
