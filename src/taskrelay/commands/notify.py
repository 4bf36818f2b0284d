"""Notify command for taskrelay.

Sends a task notification and prints the new session as JSON.
"""

from pathlib import Path

import click
import orjson

from taskrelay.commands.common import require_settings
from taskrelay.core.errors import RelayError
from taskrelay.core.session import VALID_KINDS, TaskEvent
from taskrelay.core.tmux import get_current_session
from taskrelay.factory import create_manager


@click.command()
@click.option(
    "--kind",
    type=click.Choice(sorted(VALID_KINDS)),
    default="completed",
    show_default=True,
    help="Task event type",
)
@click.option("--project", default=None, help="Project label (default: current directory name)")
@click.option("--question", default="", help="Prompt the agent was working on")
@click.option("--response", default="", help="What the agent answered")
@click.option("--target", default=None, help="tmux target for replies (default: current session)")
def notify(
    kind: str,
    project: str | None,
    question: str,
    response: str,
    target: str | None,
) -> None:
    """Send a task notification to Telegram.

    Prints JSON with the session id, token and expiry.

    Examples:

        taskrelay notify --kind completed --response "All tests pass"

        taskrelay notify --kind waiting --project api --target agents:1
    """
    settings = require_settings()
    event = TaskEvent(
        kind=kind,
        project=project or Path.cwd().name,
        question=question,
        response=response,
        target=target or get_current_session(),
    )

    manager = create_manager(settings)
    try:
        session = manager.on_notification(event)
    except RelayError as e:
        click.echo(f"Notification failed: {e}", err=True)
        raise SystemExit(1)
    finally:
        manager.store.close()

    result = {
        "id": session.id,
        "token": session.token,
        "target": session.target,
        "expires_at": session.expires_at,
    }
    click.echo(orjson.dumps(result).decode())
