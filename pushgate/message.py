"""Outbound message builder.

A ``Message`` holds one payload and any number of recipients.  The
delivery engine consumes it through ``payload_bytes()``,
``recipient_count()``, ``recipient_at()``, ``expiry``, ``priority`` and
``custom_identifier``; every recipient becomes one queued notification.

Invalid values are rejected when they are set, never at send time.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pushgate.errors import MessageError
from pushgate.models.notification import Priority

PAYLOAD_MAXIMUM_SIZE = 256
RESERVED_NAMESPACE = "aps"
DEFAULT_EXPIRY = 604800

_TOKEN_RE = re.compile(r"^[a-f0-9]{64}$", re.IGNORECASE)


class Message:
    """A push message for one or more device tokens.

    Parameters
    ----------
    device_token:
        Optional first recipient.
    text:
        Alert text.  Shortened automatically when the payload would exceed
        ``PAYLOAD_MAXIMUM_SIZE`` bytes, unless ``auto_adjust_long_payload``
        is disabled.
    """

    def __init__(
        self,
        device_token: str | None = None,
        *,
        text: str | None = None,
        badge: int | None = None,
        sound: str | None = None,
        expiry: int = DEFAULT_EXPIRY,
        priority: int = Priority.IMMEDIATE,
        custom_identifier: str | None = None,
    ) -> None:
        self._tokens: list[str] = []
        self._text: str | None = None
        self._badge: int | None = None
        self._sound: str | None = None
        self._content_available: bool | None = None
        self._custom: dict[str, Any] = {}
        self._expiry = DEFAULT_EXPIRY
        self._priority = Priority.IMMEDIATE
        self.custom_identifier = custom_identifier
        self.auto_adjust_long_payload = True

        if device_token is not None:
            self.add_recipient(device_token)
        self.text = text
        if badge is not None:
            self.badge = badge
        self.sound = sound
        self.expiry = expiry
        self.priority = priority

    # ------------------------------------------------------------------
    # Recipients
    # ------------------------------------------------------------------

    def add_recipient(self, device_token: str) -> None:
        if not isinstance(device_token, str) or not _TOKEN_RE.match(device_token):
            raise MessageError(f"Invalid device token '{device_token}'")
        self._tokens.append(device_token)

    def recipient_count(self) -> int:
        return len(self._tokens)

    def recipient_at(self, index: int = 0) -> str:
        if not 0 <= index < len(self._tokens):
            raise MessageError(f"No recipient at index '{index}'")
        return self._tokens[index]

    @property
    def recipients(self) -> list[str]:
        return list(self._tokens)

    # ------------------------------------------------------------------
    # Payload fields
    # ------------------------------------------------------------------

    @property
    def text(self) -> str | None:
        return self._text

    @text.setter
    def text(self, value: str | None) -> None:
        self._text = value

    @property
    def badge(self) -> int | None:
        return self._badge

    @badge.setter
    def badge(self, value: int) -> None:
        if not isinstance(value, int) or isinstance(value, bool):
            raise MessageError(f"Invalid badge number '{value}'")
        self._badge = value

    @property
    def sound(self) -> str | None:
        return self._sound

    @sound.setter
    def sound(self, value: str | None) -> None:
        self._sound = value

    @property
    def content_available(self) -> bool | None:
        return self._content_available

    @content_available.setter
    def content_available(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise MessageError(f"Invalid content-available value '{value}'")
        self._content_available = True if value else None

    def set_custom_property(self, name: str, value: Any) -> None:
        if name.strip() == RESERVED_NAMESPACE:
            raise MessageError(
                f"Property name '{RESERVED_NAMESPACE}' can not be used for custom property."
            )
        self._custom[name.strip()] = value

    def custom_property(self, name: str) -> Any:
        try:
            return self._custom[name]
        except KeyError:
            raise MessageError(
                f"No property exists with the specified name '{name}'."
            ) from None

    @property
    def custom_property_names(self) -> list[str]:
        return list(self._custom)

    # ------------------------------------------------------------------
    # Delivery attributes
    # ------------------------------------------------------------------

    @property
    def expiry(self) -> int:
        """Seconds since epoch after which the gateway drops the message (0 = do not store)."""
        return self._expiry

    @expiry.setter
    def expiry(self, value: int) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 0xFFFFFFFF:
            raise MessageError(f"Invalid seconds number '{value}'")
        self._expiry = value

    @property
    def priority(self) -> Priority:
        return self._priority

    @priority.setter
    def priority(self, value: int) -> None:
        try:
            self._priority = Priority(value)
        except ValueError:
            raise MessageError(f"Invalid priority value '{value}'") from None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def payload_dict(self, text: str | None = None) -> dict[str, Any]:
        aps: dict[str, Any] = {}
        alert = self._text if text is None else text
        if alert is not None:
            aps["alert"] = str(alert)
        if self._badge is not None and self._badge >= 0:
            aps["badge"] = self._badge
        if self._sound is not None:
            aps["sound"] = str(self._sound)
        if self._content_available is not None:
            aps["content-available"] = 1
        payload: dict[str, Any] = {RESERVED_NAMESPACE: aps}
        payload.update(self._custom)
        return payload

    def payload(self) -> str:
        """Return the JSON payload, shortening the alert text if needed.

        Raises
        ------
        MessageError
            If the payload is too long and the text cannot absorb the excess.
        """
        text = self._text
        while True:
            body = json.dumps(
                self.payload_dict(text), ensure_ascii=False, separators=(",", ":")
            )
            size = len(body.encode("utf-8"))
            if size <= PAYLOAD_MAXIMUM_SIZE:
                return body
            if not self.auto_adjust_long_payload:
                raise MessageError(
                    f"JSON Payload is too long: {size} bytes. "
                    f"Maximum size is {PAYLOAD_MAXIMUM_SIZE} bytes"
                )
            encoded = (text or "").encode("utf-8")
            max_len = len(encoded) - (size - PAYLOAD_MAXIMUM_SIZE)
            if max_len <= 0:
                raise MessageError(
                    f"JSON Payload is too long: {size} bytes. "
                    f"Maximum size is {PAYLOAD_MAXIMUM_SIZE} bytes. "
                    "The message text can not be auto-adjusted."
                )
            # Cut on a character boundary.
            text = encoded[:max_len].decode("utf-8", errors="ignore")

    def payload_bytes(self) -> bytes:
        return self.payload().encode("utf-8")

    def __str__(self) -> str:
        try:
            return self.payload()
        except MessageError:
            return ""

    def __repr__(self) -> str:
        return (
            f"Message(recipients={len(self._tokens)}, "
            f"custom_identifier={self.custom_identifier!r})"
        )
