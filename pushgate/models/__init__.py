"""pushgate data models — Pydantic v2, frozen."""

from pushgate.models.endpoints import ENDPOINTS, Environment, Service
from pushgate.models.feedback import FeedbackTuple
from pushgate.models.notification import (
    STATUS_MESSAGES,
    ErrorResponse,
    Priority,
    QueuedNotification,
    status_message,
)

__all__ = [
    # endpoints
    "ENDPOINTS",
    "Environment",
    "Service",
    # notifications
    "ErrorResponse",
    "Priority",
    "QueuedNotification",
    "STATUS_MESSAGES",
    "status_message",
    # feedback
    "FeedbackTuple",
]
