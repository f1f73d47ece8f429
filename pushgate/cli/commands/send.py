"""``pushgate send TOKEN...`` — deliver one message over a single connection."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from pushgate.cli.commands._common import (
    build_config,
    build_message,
    errors_table,
    parse_custom,
)
from pushgate.errors import PushgateError
from pushgate.models.endpoints import Environment
from pushgate.push.engine import PushEngine

console = Console()


def send_cmd(
    tokens: list[str] = typer.Argument(..., help="Device tokens (64 hex characters)."),
    text: str = typer.Option(None, "--text", "-t", help="Alert text."),
    badge: int = typer.Option(None, "--badge", "-b", help="Badge number."),
    sound: str = typer.Option(None, "--sound", "-s", help="Sound name."),
    priority: int = typer.Option(10, "--priority", "-p", help="5 (conserve power) or 10 (immediate)."),
    ttl: int = typer.Option(0, "--ttl", help="Seconds the gateway may store the message (0 = do not store)."),
    custom: list[str] = typer.Option(None, "--custom", "-c", help="Custom property KEY=VALUE (repeatable)."),
    identifier: str = typer.Option(None, "--identifier", help="Custom identifier used in logs."),
    environment: Environment = typer.Option(None, "--environment", "-e", help="production or sandbox."),
    cert: Path = typer.Option(None, "--cert", help="Provider certificate (PEM)."),
    passphrase: str = typer.Option(None, "--passphrase", help="Certificate passphrase."),
    ca_file: Path = typer.Option(None, "--ca-file", help="CA bundle used to verify the gateway."),
) -> None:
    """Send one message to every TOKEN and report the failures."""
    try:
        config = build_config(environment, cert, passphrase, ca_file)
        message = build_message(
            tokens,
            text=text,
            badge=badge,
            sound=sound,
            priority=priority,
            ttl=ttl,
            custom=parse_custom(custom),
            identifier=identifier,
        )
        engine = PushEngine.from_config(config)
        engine.connect()
    except PushgateError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        engine.enqueue(message)
        engine.send()
    except PushgateError as exc:
        console.print(f"[bold red]Delivery aborted:[/bold red] {exc}")
        raise typer.Exit(code=1)
    finally:
        engine.disconnect()

    failed = list(engine.get_errors().values())
    pending = engine.get_queue()
    if failed:
        console.print(errors_table(failed))
    if pending:
        console.print(f"[yellow]{len(pending)} notification(s) left unconfirmed.[/yellow]")
    if failed or pending:
        raise typer.Exit(code=1)
    console.print(f"[green]Sent to {len(tokens)} device(s).[/green]")
