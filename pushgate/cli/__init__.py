"""pushgate CLI — Typer-based command-line interface.

Provides the ``pushgate`` command with subcommands for sending a message,
draining the feedback service, fanning a token list out over worker
processes, and inspecting the effective configuration.

All output uses Rich for formatted terminal display.
"""
