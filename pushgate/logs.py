"""Log sinks — the single-method logging capability used by the core.

Core components report every connection attempt, retry, write and
reconciliation through an injected ``LogSink``.  Messages carry a short
level tag (``INFO:``, ``STATUS:``, ``WARNING:``, ``ERROR:``) so that plain
sinks can print them verbatim while ``LoggingSink`` maps the tag onto a
stdlib logging level.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from pushgate.errors import ConfigurationError

logger = logging.getLogger("pushgate")

_TAG_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "STATUS": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


@runtime_checkable
class LogSink(Protocol):
    """Anything with a ``log(message)`` method."""

    def log(self, message: str) -> None:
        ...


def split_tag(message: str) -> tuple[int, str]:
    """Split a tagged message into (logging level, text).

    Untagged messages are logged at INFO.
    """
    tag, sep, rest = message.partition(":")
    level = _TAG_LEVELS.get(tag.strip().upper()) if sep else None
    if level is None:
        return logging.INFO, message.strip()
    return level, rest.strip()


class LoggingSink:
    """Default sink: forwards to the stdlib ``pushgate`` logger."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def log(self, message: str) -> None:
        level, text = split_tag(message)
        self._logger.log(level, "%s", text)


class NullSink:
    """Discards everything."""

    def log(self, message: str) -> None:
        pass


class ConsoleSink:
    """Prints ``<date> pushgate[<pid>]: <message>`` lines to a stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def log(self, message: str) -> None:
        stream = self._stream or sys.stdout
        stamp = format_datetime(datetime.now(timezone.utc).astimezone())
        stream.write(f"{stamp} pushgate[{os.getpid()}]: {message.strip()}\n")
        stream.flush()


class FileSink:
    """Appends ``Date: <ISO 8601> - Message: <message>`` lines to a file.

    Parameters
    ----------
    path:
        An existing, writable file.

    Raises
    ------
    ConfigurationError
        If *path* does not exist or is not writable.
    """

    def __init__(self, path: Path | str) -> None:
        target = Path(path)
        if not target.is_file():
            raise ConfigurationError(f"Log file '{target}' does not exist")
        if not os.access(target, os.W_OK):
            raise ConfigurationError(f"Log file '{target}' is not writable")
        self._path = target

    @property
    def path(self) -> Path:
        return self._path

    def log(self, message: str) -> None:
        stamp = datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(f"Date: {stamp} - Message: {message}\n")
