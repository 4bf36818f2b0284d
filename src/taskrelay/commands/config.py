"""Config commands for taskrelay."""

import click
import orjson

from taskrelay.commands.common import load_settings_or_exit
from taskrelay.core.config import SETTING_NAMES, get_config_path, set_setting


@click.group()
def config() -> None:
    """Show or change settings in ~/.taskrelay/config.json."""
    pass


@config.command()
def show() -> None:
    """Show effective settings (file plus environment), secrets masked."""
    settings = load_settings_or_exit()
    click.echo(orjson.dumps(settings.redacted(), option=orjson.OPT_INDENT_2).decode())


@config.command("set")
@click.argument("key", type=click.Choice(sorted(SETTING_NAMES)))
@click.argument("value")
def set_value(key: str, value: str) -> None:
    """Persist KEY=VALUE to the config file.

    List settings (whitelist, quick_commands) take comma-separated values.

    Examples:

        taskrelay config set chat_id 123456789

        taskrelay config set token_ttl_seconds 604800

        taskrelay config set quick_commands "continue,run tests"
    """
    try:
        set_setting(key, value)
    except ValueError as e:
        click.echo(f"Invalid value for {key}: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Set {key} in {get_config_path()}")
