"""Uninstall command for taskrelay.

Removes taskrelay from the system:
- taskrelay hooks from Claude Code settings
- ~/.taskrelay directory (sessions and config), with --purge
"""

import shutil

import click

from taskrelay.core.config import get_relay_home
from taskrelay.hooks.install import uninstall_hooks


@click.command()
@click.option("--purge", is_flag=True, help="Also delete ~/.taskrelay (sessions and config)")
@click.confirmation_option(prompt="Remove taskrelay hooks from Claude Code?")
def uninstall(purge: bool) -> None:
    """Remove taskrelay hooks (and optionally its data).

    Examples:

        taskrelay uninstall --yes

        taskrelay uninstall --purge --yes
    """
    if uninstall_hooks():
        click.echo("Removed hooks from ~/.claude/settings.json")
    else:
        click.echo("No taskrelay hooks found")

    if purge:
        data_dir = get_relay_home()
        if data_dir.exists():
            shutil.rmtree(data_dir)
            click.echo(f"Deleted {data_dir}")
