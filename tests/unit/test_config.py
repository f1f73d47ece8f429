"""Unit tests for PushgateConfig."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from pushgate.config import PushgateConfig
from pushgate.errors import ConfigurationError
from pushgate.models.endpoints import Environment, Service


# ---------------------------------------------------------------------------
# Test: settings
# ---------------------------------------------------------------------------


class TestPushgateConfig:
    """Defaults, environment overrides and bounds."""

    def test_defaults(self):
        """Defaults match the legacy client's tuning."""
        config = PushgateConfig()
        assert config.environment == Environment.SANDBOX
        assert config.connect_retry_times == 3
        assert config.connect_retry_interval == 1.0
        assert config.socket_select_timeout == 1.0
        assert config.write_interval == 0.01
        assert config.send_retry_times == 3
        assert config.processes == 3
        assert config.main_loop_interval == 0.2
        assert not config.is_production

    def test_env_override(self, monkeypatch):
        """PUSHGATE_* variables override the defaults."""
        monkeypatch.setenv("PUSHGATE_ENVIRONMENT", "production")
        monkeypatch.setenv("PUSHGATE_PROCESSES", "6")
        monkeypatch.setenv("PUSHGATE_SEND_RETRY_TIMES", "5")
        config = PushgateConfig()
        assert config.is_production
        assert config.processes == 6
        assert config.send_retry_times == 5

    @pytest.mark.parametrize(
        "field, value",
        [("processes", 0), ("send_retry_times", 0), ("connect_retry_times", -1)],
    )
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            PushgateConfig(**{field: value})


# ---------------------------------------------------------------------------
# Test: endpoint resolution
# ---------------------------------------------------------------------------


class TestEndpoint:
    """Environment endpoints and host:port overrides."""

    def test_sandbox(self):
        config = PushgateConfig()
        assert config.endpoint(Service.PUSH) == ("gateway.sandbox.push.apple.com", 2195)
        assert config.endpoint(Service.FEEDBACK) == ("feedback.sandbox.push.apple.com", 2196)

    def test_production(self):
        config = PushgateConfig(environment="production")
        assert config.endpoint(Service.PUSH) == ("gateway.push.apple.com", 2195)

    def test_override(self):
        """An override replaces one service's endpoint only."""
        config = PushgateConfig(gateway_host="localhost:12195")
        assert config.endpoint(Service.PUSH) == ("localhost", 12195)
        # feedback still resolves from the environment
        assert config.endpoint(Service.FEEDBACK)[1] == 2196

    @pytest.mark.parametrize("override", ["localhost", ":2195", "localhost:port"])
    def test_bad_override(self, override):
        """Overrides must be host:port with a numeric port."""
        with pytest.raises(ConfigurationError, match="host:port"):
            PushgateConfig(feedback_host=override).endpoint(Service.FEEDBACK)


# ---------------------------------------------------------------------------
# Test: credentials
# ---------------------------------------------------------------------------


class TestRequireCredentials:
    """The certificate and CA file must be readable."""

    def test_missing_certificate(self):
        with pytest.raises(ConfigurationError, match="No provider certificate"):
            PushgateConfig().require_credentials()

    def test_unreadable_certificate(self, tmp_path: Path):
        config = PushgateConfig(certificate_path=tmp_path / "missing.pem")
        with pytest.raises(ConfigurationError, match="certificate file"):
            config.require_credentials()

    def test_unreadable_ca_file(self, cert_file: Path, tmp_path: Path):
        config = PushgateConfig(certificate_path=cert_file, ca_file=tmp_path / "ca.pem")
        with pytest.raises(ConfigurationError, match="Certificate Authority"):
            config.require_credentials()

    def test_ok(self, cert_file: Path):
        PushgateConfig(certificate_path=cert_file).require_credentials()
