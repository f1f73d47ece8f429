"""``pushgate feedback`` — drain the feedback service."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from pushgate.cli.commands._common import build_config
from pushgate.errors import PushgateError
from pushgate.feedback.reader import FeedbackReader
from pushgate.models.endpoints import Environment

console = Console()


def feedback_cmd(
    as_json: bool = typer.Option(False, "--json", help="Print one JSON object per tuple."),
    environment: Environment = typer.Option(None, "--environment", "-e", help="production or sandbox."),
    cert: Path = typer.Option(None, "--cert", help="Provider certificate (PEM)."),
    passphrase: str = typer.Option(None, "--passphrase", help="Certificate passphrase."),
    ca_file: Path = typer.Option(None, "--ca-file", help="CA bundle used to verify the gateway."),
) -> None:
    """List devices the feedback service reports as gone.

    Reading is destructive: the service will not report the same tuples again.
    """
    try:
        config = build_config(environment, cert, passphrase, ca_file)
        reader = FeedbackReader.from_config(config)
        reader.connect()
    except PushgateError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        tuples = reader.receive()
    finally:
        reader.disconnect()

    if as_json:
        for item in tuples:
            console.print_json(json.dumps(item.model_dump()))
        return

    if not tuples:
        console.print("[dim]No feedback tuples.[/dim]")
        return

    table = Table(title=f"Feedback ({len(tuples)})")
    table.add_column("Received", style="cyan")
    table.add_column("Device token")
    for item in tuples:
        table.add_row(f"{item.received_at:%Y-%m-%d %H:%M:%S}", item.device_token)
    console.print(table)
