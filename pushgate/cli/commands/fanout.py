"""``pushgate fanout TOKENS_FILE`` — deliver through forked worker processes.

One message per token line is distributed round robin over the workers.
The command waits until every channel has been drained, gives the workers
time to finish their last send, stops them and prints the aggregated
failures.
"""

from __future__ import annotations

import time
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
from pushgate.server.fanout import FanoutServer

console = Console()


def read_tokens(path: Path) -> list[str]:
    """Token per line; blank lines and ``#`` comments are skipped."""
    tokens: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        token = line.strip()
        if token and not token.startswith("#"):
            tokens.append(token)
    return tokens


def fanout_cmd(
    tokens_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with one device token per line."),
    text: str = typer.Option(None, "--text", "-t", help="Alert text."),
    badge: int = typer.Option(None, "--badge", "-b", help="Badge number."),
    sound: str = typer.Option(None, "--sound", "-s", help="Sound name."),
    priority: int = typer.Option(10, "--priority", "-p", help="5 (conserve power) or 10 (immediate)."),
    ttl: int = typer.Option(0, "--ttl", help="Seconds the gateway may store the message (0 = do not store)."),
    custom: list[str] = typer.Option(None, "--custom", "-c", help="Custom property KEY=VALUE (repeatable)."),
    processes: int = typer.Option(None, "--processes", "-n", help="Number of worker processes."),
    settle: float = typer.Option(3.0, "--settle", help="Seconds to let workers finish after the channels drain."),
    timeout: float = typer.Option(300.0, "--timeout", help="Give up waiting for the channels after this many seconds."),
    environment: Environment = typer.Option(None, "--environment", "-e", help="production or sandbox."),
    cert: Path = typer.Option(None, "--cert", help="Provider certificate (PEM)."),
    passphrase: str = typer.Option(None, "--passphrase", help="Certificate passphrase."),
    ca_file: Path = typer.Option(None, "--ca-file", help="CA bundle used to verify the gateway."),
) -> None:
    """Send one message per token line using forked delivery workers."""
    tokens = read_tokens(tokens_file)
    if not tokens:
        console.print(f"[yellow]No tokens in {tokens_file}.[/yellow]")
        raise typer.Exit(code=1)

    try:
        config = build_config(environment, cert, passphrase, ca_file, processes=processes)
        properties = parse_custom(custom)
        messages = [
            build_message(
                [token],
                text=text,
                badge=badge,
                sound=sound,
                priority=priority,
                ttl=ttl,
                custom=properties,
                identifier=f"line-{number}",
            )
            for number, token in enumerate(tokens, start=1)
        ]
        server = FanoutServer(config)
    except PushgateError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    server.start()
    for message in messages:
        server.add(message)
    console.print(
        f"Distributed {len(messages)} message(s) over {server.processes} worker(s)."
    )

    deadline = time.monotonic() + timeout
    while server.run() and server.queues.pending() and time.monotonic() < deadline:
        time.sleep(config.main_loop_interval)
    if server.run():
        time.sleep(settle)

    server.stop()
    server.join(timeout=settle + config.socket_select_timeout)

    failed = server.get_errors()
    undelivered = server.get_queue()
    if failed:
        console.print(errors_table(failed))
    if undelivered:
        console.print(f"[yellow]{len(undelivered)} message(s) never reached a worker.[/yellow]")
    if failed or undelivered:
        raise typer.Exit(code=1)
    console.print("[green]All channels drained without reported failures.[/green]")
