"""Notification and error-response models for the binary push protocol.

All models are frozen.  The delivery engine records a failure by
replacing the queued entry with ``with_error(...)``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pushgate.errors import (
    ClientRejectionError,
    DeliveryError,
    TransientDeliveryError,
)

ERROR_RESPONSE_COMMAND = 8
STATUS_CODE_SUCCESS = 0
STATUS_CODE_PROCESSING_ERROR = 1
STATUS_CODE_INTERNAL_ERROR = 999

# Codes 2-8: the gateway refused the notification itself.
CLIENT_REJECTION_CODES = range(2, 9)

STATUS_MESSAGES: dict[int, str] = {
    0: "No errors encountered",
    1: "Processing error",
    2: "Missing device token",
    3: "Missing topic",
    4: "Missing payload",
    5: "Invalid token size",
    6: "Invalid topic size",
    7: "Invalid payload size",
    8: "Invalid token",
    STATUS_CODE_INTERNAL_ERROR: "Internal error",
}

UNKNOWN_STATUS_MESSAGE = "None (unknown)"


def status_message(status_code: int) -> str:
    """Return the human text for a gateway status code."""
    return STATUS_MESSAGES.get(status_code, UNKNOWN_STATUS_MESSAGE)


class Priority(IntEnum):
    """Delivery priority carried in frame item 5."""

    CONSERVE_POWER = 5
    IMMEDIATE = 10


class ErrorResponse(BaseModel):
    """A delivery failure for one sequence id.

    Decoded from a 6-byte error-response frame, or synthesized locally
    with status ``999`` when a write came up short.
    """

    model_config = ConfigDict(frozen=True)

    command: int = ERROR_RESPONSE_COMMAND
    status_code: int
    sequence_id: int
    observed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    status_message: str = ""

    @model_validator(mode="before")
    @classmethod
    def _fill_status_message(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("status_message"):
            data = {**data, "status_message": status_message(data.get("status_code", -1))}
        return data

    @property
    def is_success(self) -> bool:
        return self.status_code == STATUS_CODE_SUCCESS

    @property
    def is_client_rejection(self) -> bool:
        """``True`` for codes the gateway will never accept on retry."""
        return self.status_code in CLIENT_REJECTION_CODES

    def to_exception(self) -> DeliveryError:
        """Build the matching ``DeliveryError`` for reporting."""
        text = (
            f"Unable to send message ID {self.sequence_id}: "
            f"{self.status_message} ({self.status_code})"
        )
        cls = ClientRejectionError if self.is_client_rejection else TransientDeliveryError
        return cls(text, sequence_id=self.sequence_id, status_code=self.status_code)


class QueuedNotification(BaseModel):
    """One recipient of one message, waiting in a delivery queue."""

    model_config = ConfigDict(frozen=True)

    sequence_id: int = Field(gt=0)
    device_token: str
    payload: bytes
    expiry: int = 0
    priority: Priority = Priority.IMMEDIATE
    custom_identifier: str | None = None
    errors: tuple[ErrorResponse, ...] = ()

    @field_validator("device_token")
    @classmethod
    def _token_is_hex(cls, value: str) -> str:
        if len(value) != 64:
            raise ValueError(f"device token must be 64 hex characters, got {len(value)}")
        bytes.fromhex(value)
        return value

    @property
    def label(self) -> str:
        """Log-friendly custom identifier tag."""
        return f"[custom identifier: {self.custom_identifier or 'unset'}]"

    def with_error(self, error: ErrorResponse) -> QueuedNotification:
        """Return a copy with *error* appended to the error history."""
        return self.model_copy(update={"errors": (*self.errors, error)})
