"""Serve command for taskrelay.

Runs the Telegram webhook server.
"""

import click
import uvicorn

from taskrelay.commands.common import require_settings, webhook_endpoint
from taskrelay.core.errors import SendError
from taskrelay.factory import create_client, create_manager
from taskrelay.telegram.webhook import create_app


@click.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", type=int, default=None, help="Port (default: configured port)")
@click.option(
    "--set-webhook",
    "webhook_url",
    default=None,
    help="Register this public URL with Telegram before serving",
)
def serve(host: str, port: int | None, webhook_url: str | None) -> None:
    """Run the Telegram webhook server.

    Telegram must be able to reach the server; pass the public URL with
    --set-webhook (or configure webhook_url) to register it on startup.

    Examples:

        taskrelay serve

        taskrelay serve --port 8080 --set-webhook https://relay.example.com
    """
    settings = require_settings()
    client = create_client(settings)
    manager = create_manager(settings, client=client)

    url = webhook_url or settings.webhook_url
    if url:
        try:
            client.set_webhook(webhook_endpoint(url), settings.webhook_secret)
        except SendError as e:
            click.echo(f"Failed to set webhook: {e}", err=True)
            raise SystemExit(1)
        click.echo(f"Webhook set to {webhook_endpoint(url)}")

    app = create_app(manager, client, settings)
    try:
        uvicorn.run(app, host=host, port=port or settings.port, log_level="info")
    finally:
        manager.store.close()
        client.close()
