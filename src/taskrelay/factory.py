"""Wiring of settings, store, Telegram client and session manager."""

from pathlib import Path

from taskrelay.core.config import Settings, get_db_path, load_settings
from taskrelay.core.dispatch import Dispatcher, TmuxInjector
from taskrelay.core.lifecycle import SessionManager
from taskrelay.core.store import SessionStore
from taskrelay.telegram.client import TelegramClient


def create_store(settings: Settings, db_path: Path | None = None) -> SessionStore:
    return SessionStore(db_path or get_db_path(), legacy_dir=settings.legacy_dir)


def create_client(settings: Settings) -> TelegramClient:
    return TelegramClient(
        settings.bot_token,
        fallback_username=settings.bot_username,
        force_ipv4=settings.force_ipv4,
    )


def create_manager(
    settings: Settings | None = None,
    client: TelegramClient | None = None,
    store: SessionStore | None = None,
) -> SessionManager:
    """Build a SessionManager from settings (loaded from disk if not given)."""
    settings = settings or load_settings()
    return SessionManager(
        store=store or create_store(settings),
        settings=settings,
        sender=client or create_client(settings),
        dispatcher=Dispatcher(TmuxInjector()),
    )
