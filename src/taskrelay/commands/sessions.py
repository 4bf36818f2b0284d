"""Session management commands for taskrelay."""

from datetime import datetime
from pathlib import Path

import click
import orjson

from taskrelay.commands.common import load_settings_or_exit
from taskrelay.core.session import Session
from taskrelay.factory import create_manager


def _format_row(session: Session, now: int) -> str:
    expires = datetime.fromtimestamp(session.expires_at).strftime("%Y-%m-%d %H:%M")
    status = "expired" if session.is_expired(now) else "active"
    project = session.project or "-"
    return f"{session.token}  {status:<7}  {expires}  {session.target:<20}  {project}"


@click.group()
def sessions() -> None:
    """Inspect and clean up stored sessions."""
    pass


@sessions.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def list_sessions(as_json: bool) -> None:
    """List stored sessions, newest first."""
    manager = create_manager(load_settings_or_exit())
    try:
        all_sessions = manager.store.list_sessions()
    finally:
        manager.store.close()

    if as_json:
        click.echo(orjson.dumps([s.to_dict() for s in all_sessions]).decode())
        return

    if not all_sessions:
        click.echo("No sessions")
        return

    now = manager.now()
    for session in all_sessions:
        click.echo(_format_row(session, now))


@sessions.command()
@click.argument("token")
def show(token: str) -> None:
    """Show the session for TOKEN as JSON.

    Looking up an expired token deletes its session.
    """
    manager = create_manager(load_settings_or_exit())
    try:
        session = manager.lookup(token)
    finally:
        manager.store.close()

    if session is None:
        click.echo(f"Token {token.upper()} not found or expired", err=True)
        raise SystemExit(1)
    click.echo(orjson.dumps(session.to_dict()).decode())


@sessions.command()
@click.argument("token")
def revoke(token: str) -> None:
    """Delete the session for TOKEN so it can no longer be used."""
    manager = create_manager(load_settings_or_exit())
    try:
        removed = manager.revoke(token)
    finally:
        manager.store.close()

    if not removed:
        click.echo(f"Token {token.upper()} not found", err=True)
        raise SystemExit(1)
    click.echo(f"Revoked {token.upper()}")


@sessions.command()
def sweep() -> None:
    """Delete all expired sessions."""
    manager = create_manager(load_settings_or_exit())
    try:
        removed = manager.sweep()
    finally:
        manager.store.close()
    click.echo(f"Removed {removed} expired session(s)")


@sessions.command()
@click.argument(
    "directory",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
def migrate(directory: Path | None) -> None:
    """Import legacy JSON session files from DIRECTORY.

    Defaults to the configured legacy_sessions_dir. Expired records are
    skipped; the files themselves are not modified.
    """
    settings = load_settings_or_exit()
    directory = directory or settings.legacy_dir
    if directory is None:
        click.echo("No directory given and legacy_sessions_dir is not set", err=True)
        raise SystemExit(1)

    manager = create_manager(settings)
    try:
        imported = manager.store.import_legacy(directory, manager.now())
    finally:
        manager.store.close()
    click.echo(f"Imported {imported} session(s) from {directory}")
