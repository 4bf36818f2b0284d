"""CLI entry point for taskrelay.

Usage:
    taskrelay serve                   # Run the Telegram webhook server
    taskrelay notify --kind completed # Send a task notification
    taskrelay sessions list           # Show stored sessions
    taskrelay setup                   # Install Claude Code hooks
"""

import logging
import sys

import click

from taskrelay.commands.config import config
from taskrelay.commands.notify import notify
from taskrelay.commands.serve import serve
from taskrelay.commands.sessions import sessions
from taskrelay.commands.setup import setup
from taskrelay.commands.uninstall import uninstall
from taskrelay.commands.webhook import webhook

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    envvar="TASKRELAY_LOG_LEVEL",
    show_default=True,
    help="Logging verbosity",
)
@click.version_option()
def main(log_level: str) -> None:
    """taskrelay - Telegram remote control for Claude Code.

    Sends a notification with a short token when a task finishes or needs
    input, and types your replies back into the agent's tmux session.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s:%(name)s:%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


# Register commands
main.add_command(serve)
main.add_command(notify)
main.add_command(sessions)
main.add_command(webhook)
main.add_command(config)
main.add_command(setup)
main.add_command(uninstall)
