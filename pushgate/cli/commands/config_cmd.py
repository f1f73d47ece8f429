"""``pushgate config`` — show the effective configuration."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from pushgate.config import PushgateConfig
from pushgate.models.endpoints import Service

console = Console()

_SECRET_FIELDS = {"certificate_passphrase"}


def config_cmd() -> None:
    """Show settings resolved from PUSHGATE_* variables and .env."""
    config = PushgateConfig()
    table = Table(title="pushgate configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.model_dump(mode="json").items():
        if name in _SECRET_FIELDS and value:
            value = "********"
        table.add_row(name, "[dim]unset[/dim]" if value is None else str(value))
    for service in Service:
        host, port = config.endpoint(service)
        table.add_row(f"{service.value} endpoint", f"{host}:{port}")
    console.print(table)
