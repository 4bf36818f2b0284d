"""FastAPI application receiving Telegram webhook updates.

The webhook route is a plain (sync) function, so FastAPI runs each update in
its own worker thread: a slow tmux injection or Telegram call for one chat
never holds up another update.
"""

import logging
from typing import Any

from fastapi import Body, FastAPI, Header
from fastapi.responses import JSONResponse

from taskrelay.core import messages
from taskrelay.core.config import Settings
from taskrelay.core.errors import SendError
from taskrelay.core.lifecycle import InboundResult, SessionManager
from taskrelay.telegram.client import TelegramClient

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook/telegram"


def _chat_id_of(update: dict) -> str | None:
    """Best-effort chat id of an update, for error replies."""
    message = update.get("message") or (update.get("callback_query") or {}).get("message")
    if not isinstance(message, dict):
        return None
    chat_id = (message.get("chat") or {}).get("id")
    return str(chat_id) if chat_id is not None else None


def handle_update(
    update: dict, manager: SessionManager, client: TelegramClient
) -> InboundResult | None:
    """Route one Telegram update to the session manager.

    Returns:
        The manager's result, or None if the update carried nothing to act on.
    """
    if "message" in update:
        message = update["message"]
        text = (message.get("text") or "").strip()
        if not text:
            return None
        chat_id = message["chat"]["id"]
        user_id = (message.get("from") or {}).get("id", "")
        replied_to = message.get("reply_to_message") or {}
        reply_to_bot = bool((replied_to.get("from") or {}).get("is_bot"))
        return manager.on_inbound_command(user_id, chat_id, text, reply_to_bot=reply_to_bot)

    if "callback_query" in update:
        query = update["callback_query"]
        # Answer first so the button stops spinning even if handling fails
        client.answer_callback_query(query["id"])
        message = query.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            return None
        user_id = (query.get("from") or {}).get("id", "")
        return manager.on_callback(user_id, chat_id, query.get("data") or "")

    return None


def create_app(manager: SessionManager, client: TelegramClient, settings: Settings) -> FastAPI:
    """Build the webhook application."""
    app = FastAPI(title="taskrelay", docs_url=None, redoc_url=None)
    app.state.manager = manager
    app.state.client = client

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": "telegram-webhook"}

    @app.post(WEBHOOK_PATH)
    def telegram_webhook(
        update: dict[str, Any] = Body(...),
        x_telegram_bot_api_secret_token: str | None = Header(default=None),
    ):
        if settings.webhook_secret and x_telegram_bot_api_secret_token != settings.webhook_secret:
            logger.warning("Webhook rejected: invalid secret token")
            return JSONResponse(status_code=403, content={"ok": False, "error": "forbidden"})

        try:
            handle_update(update, manager, client)
        except Exception:
            # Must stay 200: Telegram redelivers updates answered with 5xx
            logger.exception("Webhook handling error")
            chat_id = _chat_id_of(update)
            if chat_id is not None:
                try:
                    client.send_message(chat_id, messages.INTERNAL_ERROR)
                except SendError as e:
                    logger.error("Failed to send error reply to %s: %s", chat_id, e)
            return {"ok": False, "error": "internal error"}

        return {"ok": True}

    return app
