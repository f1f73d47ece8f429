"""Feedback tuple model."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


class FeedbackTuple(BaseModel):
    """A device that should no longer receive notifications."""

    model_config = ConfigDict(frozen=True)

    timestamp: int
    token_length: int = 32
    device_token: str

    @property
    def received_at(self) -> datetime:
        """When the gateway determined the app was gone, as a UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
