"""Exception taxonomy for pushgate.

Configuration and connection errors surface to the caller.  Per-message
delivery failures are recorded on the notification and exposed through
the error container; ``DeliveryError`` subclasses only exist so callers
can turn a recorded ``ErrorResponse`` into something raisable.
"""

from __future__ import annotations


class PushgateError(RuntimeError):
    """Base class for every pushgate error."""


class ConfigurationError(PushgateError):
    """Raised eagerly when settings, credentials or message fields are invalid."""


class MessageError(ConfigurationError):
    """Raised when a message field (token, badge, expiry, ...) is invalid."""


class GatewayConnectionError(PushgateError, ConnectionError):
    """Raised when the gateway cannot be reached after the retry budget."""


class ProtocolDecodeError(PushgateError):
    """Raised by the strict decoders on malformed or short frames."""


class NotConnectedError(PushgateError):
    """Raised by ``send()`` when no gateway connection is open."""


class EmptyQueueError(PushgateError):
    """Raised by ``send()`` when there is nothing to deliver."""


class DeliveryError(PushgateError):
    """A per-message failure reported by the gateway or synthesized locally.

    Parameters
    ----------
    sequence_id:
        Identifier of the notification the failure refers to.
    status_code:
        Gateway status code (``999`` for local write failures).
    """

    def __init__(self, message: str, *, sequence_id: int, status_code: int) -> None:
        super().__init__(message)
        self.sequence_id = sequence_id
        self.status_code = status_code


class ClientRejectionError(DeliveryError):
    """Gateway rejected the notification itself (codes 2-8); never retried."""


class TransientDeliveryError(DeliveryError):
    """Processing or write failure (codes 1, 999); retried up to the limit."""


class ServerError(PushgateError):
    """Raised on fan-out server lifecycle misuse."""
