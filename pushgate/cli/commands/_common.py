"""Helpers shared by the CLI commands: config overrides, messages, tables."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

from rich.table import Table

from pushgate.config import PushgateConfig
from pushgate.errors import ClientRejectionError, MessageError
from pushgate.message import Message
from pushgate.models.endpoints import Environment
from pushgate.models.notification import QueuedNotification


def build_config(
    environment: Environment | None = None,
    cert: Path | None = None,
    passphrase: str | None = None,
    ca_file: Path | None = None,
    **overrides: Any,
) -> PushgateConfig:
    """Environment/.env settings with explicit command-line overrides on top."""
    values: dict[str, Any] = {
        "environment": environment,
        "certificate_path": cert,
        "certificate_passphrase": passphrase,
        "ca_file": ca_file,
        **overrides,
    }
    return PushgateConfig(**{k: v for k, v in values.items() if v is not None})


def parse_custom(pairs: list[str] | None) -> dict[str, Any]:
    """Turn ``KEY=VALUE`` pairs into custom properties (JSON values when they parse)."""
    custom: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise MessageError(f"Invalid custom property '{pair}', expected KEY=VALUE")
        try:
            custom[key.strip()] = json.loads(raw)
        except ValueError:
            custom[key.strip()] = raw
    return custom


def build_message(
    tokens: list[str],
    *,
    text: str | None,
    badge: int | None,
    sound: str | None,
    priority: int,
    ttl: int,
    custom: dict[str, Any],
    identifier: str | None = None,
) -> Message:
    """Build a message; ``ttl`` of 0 means "do not store"."""
    expiry = int(time.time()) + ttl if ttl > 0 else 0
    message = Message(
        text=text,
        badge=badge,
        sound=sound,
        expiry=expiry,
        priority=priority,
        custom_identifier=identifier,
    )
    for token in tokens:
        message.add_recipient(token)
    for name, value in custom.items():
        message.set_custom_property(name, value)
    return message


def errors_table(failed: list[QueuedNotification], title: str = "Failed notifications") -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Device token")
    table.add_column("Attempts", justify="right")
    table.add_column("Kind")
    table.add_column("Last error", style="red")
    for entry in failed:
        kind, reason = "-", "-"
        if entry.errors:
            exc = entry.errors[-1].to_exception()
            kind = "rejected" if isinstance(exc, ClientRejectionError) else "transient"
            reason = str(exc)
        table.add_row(
            str(entry.sequence_id),
            entry.device_token,
            str(len(entry.errors)),
            kind,
            reason,
        )
    return table
