"""Gateway client configuration — env-driven.

Centralized settings using pydantic-settings.  Reads from a .env file and
PUSHGATE_* environment variables.  Intervals and timeouts are in seconds.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pushgate.errors import ConfigurationError
from pushgate.models.endpoints import ENDPOINTS, Environment, Service


class PushgateConfig(BaseSettings):
    """Connection, retry and fan-out settings.

    Examples
    --------
    Override via environment::

        export PUSHGATE_ENVIRONMENT=production
        export PUSHGATE_CERTIFICATE_PATH=/etc/pushgate/provider.pem
        export PUSHGATE_PROCESSES=6

    Or via .env file::

        PUSHGATE_CERTIFICATE_PASSPHRASE=secret
        PUSHGATE_CA_FILE=/etc/pushgate/entrust_root.pem
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PUSHGATE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Environment = Environment.SANDBOX
    log_level: str = "INFO"

    # Credentials
    certificate_path: Path | None = None
    certificate_passphrase: str | None = None
    ca_file: Path | None = None

    # Endpoint overrides ("host:port"), mostly for staging and tests
    gateway_host: str | None = None
    feedback_host: str | None = None

    # Connection manager
    connect_timeout: float = Field(default=60.0, gt=0)
    connect_retry_times: int = Field(default=3, ge=0)
    connect_retry_interval: float = Field(default=1.0, ge=0)
    socket_select_timeout: float = Field(default=1.0, ge=0)

    # Delivery engine
    write_interval: float = Field(default=0.01, ge=0)
    send_retry_times: int = Field(default=3, ge=1)

    # Fan-out server
    processes: int = Field(default=3, ge=1)
    main_loop_interval: float = Field(default=0.2, gt=0)

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def endpoint(self, service: Service) -> tuple[str, int]:
        """Resolve the (host, port) pair for *service* in the active environment."""
        override = self.gateway_host if service == Service.PUSH else self.feedback_host
        if override:
            host, sep, port = override.rpartition(":")
            if not sep or not host or not port.isdigit():
                raise ConfigurationError(
                    f"Invalid endpoint override '{override}', expected host:port"
                )
            return host, int(port)
        try:
            return ENDPOINTS[service][self.environment]
        except KeyError:
            raise ConfigurationError(
                f"Invalid environment '{self.environment}'"
            ) from None

    def require_credentials(self) -> None:
        """Check that the certificate (and CA file, when set) can be read.

        Raises
        ------
        ConfigurationError
            If the certificate is missing or any configured file is unreadable.
        """
        if self.certificate_path is None:
            raise ConfigurationError(
                "No provider certificate configured (PUSHGATE_CERTIFICATE_PATH)"
            )
        if not _is_readable(self.certificate_path):
            raise ConfigurationError(
                f"Unable to read certificate file '{self.certificate_path}'"
            )
        if self.ca_file is not None and not _is_readable(self.ca_file):
            raise ConfigurationError(
                f"Unable to read Certificate Authority file '{self.ca_file}'"
            )


def _is_readable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)
