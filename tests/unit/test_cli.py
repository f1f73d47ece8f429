"""Unit tests for the CLI — Typer command registration and offline behavior.

Nothing here reaches a gateway: every invocation fails (or finishes)
before a connection is attempted.
"""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from pushgate.cli.app import app
from pushgate.cli.commands._common import build_message, errors_table, parse_custom
from pushgate.cli.commands.fanout import read_tokens
from pushgate.errors import MessageError
from pushgate.models import ErrorResponse, QueuedNotification

runner = CliRunner()

TOKEN = "c3" * 32


@pytest.fixture(autouse=True)
def _no_ambient_credentials(monkeypatch):
    """Keep a developer certificate in the environment out of the tests."""
    monkeypatch.delenv("PUSHGATE_CERTIFICATE_PATH", raising=False)


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """Top-level help and the registered commands."""

    def test_help_flag(self):
        """--help lists every command."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("send", "feedback", "fanout", "config"):
            assert command in result.output

    @pytest.mark.parametrize("command", ["send", "feedback", "fanout", "config"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: commands
# ---------------------------------------------------------------------------


class TestConfigCommand:
    """pushgate config."""

    def test_shows_settings(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "processes" in result.output
        assert "2195" in result.output

    def test_masks_passphrase(self, monkeypatch):
        """The certificate passphrase never reaches the terminal."""
        monkeypatch.setenv("PUSHGATE_CERTIFICATE_PASSPHRASE", "hunter2")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "hunter2" not in result.output


class TestSendCommand:
    """pushgate send, failing before any connection."""

    def test_invalid_token(self):
        result = runner.invoke(app, ["send", "not-a-token", "--text", "hi"])
        assert result.exit_code == 1
        assert "Invalid device token" in result.output

    def test_missing_certificate(self):
        """Without a certificate the command exits 1 and says why."""
        result = runner.invoke(app, ["send", TOKEN, "--text", "hi"])
        assert result.exit_code == 1
        assert "certificate" in result.output

    def test_invalid_priority(self, cert_file: Path):
        result = runner.invoke(
            app, ["send", TOKEN, "--priority", "7", "--cert", str(cert_file)]
        )
        assert result.exit_code == 1
        assert "priority" in result.output


class TestFanoutCommand:
    """pushgate fanout and its token file reader."""

    def test_empty_token_file(self, tmp_path: Path):
        path = tmp_path / "tokens.txt"
        path.write_text("# nothing yet\n\n")
        result = runner.invoke(app, ["fanout", str(path)])
        assert result.exit_code == 1
        assert "No tokens" in result.output

    def test_bad_token_line(self, tmp_path: Path, cert_file: Path):
        path = tmp_path / "tokens.txt"
        path.write_text(f"{TOKEN}\nbogus\n")
        result = runner.invoke(app, ["fanout", str(path), "--cert", str(cert_file)])
        assert result.exit_code == 1
        assert "Invalid device token" in result.output

    def test_read_tokens(self, tmp_path: Path):
        """Comments and blank lines are skipped, surrounding space stripped."""
        path = tmp_path / "tokens.txt"
        path.write_text(f"# header\n{TOKEN}\n\n  {TOKEN.upper()}  \n")
        assert read_tokens(path) == [TOKEN, TOKEN.upper()]


class TestHelpers:
    """Shared command helpers."""

    def test_parse_custom(self):
        """Values that parse as JSON become JSON, the rest stay strings."""
        assert parse_custom(["id=7", "tags=[1,2]", "name=plain text"]) == {
            "id": 7,
            "tags": [1, 2],
            "name": "plain text",
        }
        assert parse_custom(None) == {}

    def test_parse_custom_rejects_bad_pair(self):
        with pytest.raises(MessageError):
            parse_custom(["novalue"])

    def test_build_message_ttl(self, monkeypatch):
        """A ttl becomes an absolute expiry; 0 means do not store."""
        monkeypatch.setattr("pushgate.cli.commands._common.time.time", lambda: 1000.0)
        message = build_message(
            [TOKEN], text="hi", badge=None, sound=None, priority=10, ttl=60, custom={}
        )
        assert message.expiry == 1060
        no_store = build_message(
            [TOKEN], text="hi", badge=None, sound=None, priority=10, ttl=0, custom={}
        )
        assert no_store.expiry == 0


# ---------------------------------------------------------------------------
# Test: failure report
# ---------------------------------------------------------------------------


class TestErrorsTable:
    """The table printed for notifications that were given up on."""

    @staticmethod
    def _render(table) -> str:
        console = Console(file=io.StringIO(), width=200)
        console.print(table)
        return console.file.getvalue()

    @staticmethod
    def _failed(sequence_id: int, *codes: int) -> QueuedNotification:
        entry = QueuedNotification(sequence_id=sequence_id, device_token=TOKEN, payload=b"{}")
        for code in codes:
            entry = entry.with_error(ErrorResponse(status_code=code, sequence_id=sequence_id))
        return entry

    def test_kind_and_reason_from_last_error(self):
        """A client rejection is reported as rejected, anything else as transient."""
        output = self._render(errors_table([self._failed(3, 8), self._failed(4, 1, 1, 1)]))
        assert "rejected" in output
        assert "transient" in output
        assert "Unable to send message ID 3: Invalid token (8)" in output
        assert "Unable to send message ID 4: Processing error (1)" in output

    def test_entry_without_errors(self):
        output = self._render(errors_table([self._failed(5)]))
        assert "rejected" not in output
        assert "transient" not in output
