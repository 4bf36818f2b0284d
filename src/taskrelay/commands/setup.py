"""Setup command for taskrelay.

Installs hooks and checks the Telegram configuration.
"""

import platform

import click

from taskrelay.core.config import load_settings
from taskrelay.core.tmux import is_installed as tmux_is_installed
from taskrelay.hooks.install import install_hooks


@click.command()
def setup() -> None:
    """Set up taskrelay integration with Claude Code.

    This command:

    \b
    1. Checks that tmux is installed
    2. Installs hooks into Claude Code's settings for:
       - Completion: notify when Claude finishes a task
       - Input needed: notify when Claude waits for permission or input
    3. Reports any missing Telegram settings

    Examples:

        taskrelay setup
    """
    # 1. Check tmux
    if not tmux_is_installed():
        click.echo("tmux is not installed.", err=True)
        system = platform.system()
        if system == "Darwin":
            click.echo("Install with: brew install tmux", err=True)
        elif system == "Linux":
            click.echo("Install with: apt install tmux (or your package manager)", err=True)
        else:
            click.echo("Please install tmux to continue.", err=True)
        raise SystemExit(1)

    click.echo("tmux found.")

    # 2. Install hooks
    click.echo("Installing taskrelay hooks...")
    install_hooks()
    click.echo("Hooks installed to ~/.claude/settings.json")

    # 3. Check Telegram settings
    try:
        problems = load_settings().validate()
    except (TypeError, ValueError) as e:
        problems = [f"Invalid configuration: {e}"]

    click.echo()
    if problems:
        click.echo("Hooks are installed, but notifications will not be sent until:")
        for problem in problems:
            click.echo(f"  - {problem}")
        click.echo("Use 'taskrelay config set' or environment variables to fix this.")
    else:
        click.echo("taskrelay is now integrated with Claude Code.")
        click.echo("Run 'taskrelay serve' to receive replies.")
