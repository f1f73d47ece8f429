"""Main Typer application — imports and registers all CLI commands.

Entry point: ``pushgate`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from pushgate.cli.commands.config_cmd import config_cmd
from pushgate.cli.commands.fanout import fanout_cmd
from pushgate.cli.commands.feedback import feedback_cmd
from pushgate.cli.commands.send import send_cmd

app = typer.Typer(
    name="pushgate",
    help="pushgate: client for the legacy binary push-notification protocol.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="send", help="Send a message to one or more device tokens.")(send_cmd)
app.command(name="feedback", help="Drain the feedback service.")(feedback_cmd)
app.command(name="fanout", help="Send to a token list through worker processes.")(fanout_cmd)
app.command(name="config", help="Show the effective configuration.")(config_cmd)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", "-l", help="Log level (defaults to PUSHGATE_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Configure logging for every subcommand."""
    from pushgate.config import PushgateConfig

    level = (log_level or PushgateConfig().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
