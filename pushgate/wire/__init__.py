"""Binary wire codec for notifications, error responses and feedback tuples."""

from pushgate.wire.codec import (
    ERROR_RESPONSE_SIZE,
    FEEDBACK_TUPLE_SIZE,
    NotificationFrame,
    decode_error_response,
    decode_feedback_tuple,
    decode_notification,
    encode_error_response,
    encode_feedback_tuple,
    encode_notification,
    parse_error_response,
    split_feedback_tuples,
)

__all__ = [
    "ERROR_RESPONSE_SIZE",
    "FEEDBACK_TUPLE_SIZE",
    "NotificationFrame",
    "decode_error_response",
    "decode_feedback_tuple",
    "decode_notification",
    "encode_error_response",
    "encode_feedback_tuple",
    "encode_notification",
    "parse_error_response",
    "split_feedback_tuples",
]
