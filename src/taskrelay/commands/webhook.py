"""Webhook registration commands for taskrelay."""

import click

from taskrelay.commands.common import require_settings, webhook_endpoint
from taskrelay.core.errors import SendError
from taskrelay.factory import create_client


@click.group()
def webhook() -> None:
    """Register or remove the Telegram webhook."""
    pass


@webhook.command("set")
@click.argument("url")
def set_webhook(url: str) -> None:
    """Point Telegram at URL.

    URL is the server's public base URL; /webhook/telegram is appended if
    missing. The configured webhook_secret is registered with it.

    Examples:

        taskrelay webhook set https://relay.example.com
    """
    settings = require_settings()
    endpoint = webhook_endpoint(url)
    with create_client(settings) as client:
        try:
            client.set_webhook(endpoint, settings.webhook_secret)
        except SendError as e:
            click.echo(f"Failed to set webhook: {e}", err=True)
            raise SystemExit(1)
    click.echo(f"Webhook set to {endpoint}")


@webhook.command("delete")
def delete_webhook() -> None:
    """Stop Telegram from delivering updates to the webhook."""
    settings = require_settings()
    with create_client(settings) as client:
        try:
            client.delete_webhook()
        except SendError as e:
            click.echo(f"Failed to delete webhook: {e}", err=True)
            raise SystemExit(1)
    click.echo("Webhook deleted")
