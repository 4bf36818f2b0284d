"""Helpers shared by taskrelay commands."""

import click

from taskrelay.core.config import Settings, load_settings
from taskrelay.telegram.webhook import WEBHOOK_PATH


def load_settings_or_exit() -> Settings:
    """Load settings, exiting with status 1 if the config is invalid."""
    try:
        return load_settings()
    except (TypeError, ValueError) as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        raise SystemExit(1)


def require_settings() -> Settings:
    """Load settings and exit with status 1 unless Telegram is configured."""
    settings = load_settings_or_exit()
    problems = settings.validate()
    if problems:
        for problem in problems:
            click.echo(problem, err=True)
        raise SystemExit(1)
    return settings


def webhook_endpoint(url: str) -> str:
    """Append the webhook route to a base URL unless it is already there."""
    url = url.rstrip("/")
    if url.endswith(WEBHOOK_PATH):
        return url
    return url + WEBHOOK_PATH
