"""Telegram Bot API client.

Thin wrapper around httpx. Every failed call raises SendError; callers
decide whether that is fatal. The bot's username is fetched lazily on
first use and cached until invalidate_bot_username() is called.
"""

import logging
import threading

import httpx

from taskrelay.core.config import DEFAULT_BOT_USERNAME
from taskrelay.core.errors import SendError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.telegram.org"


class TelegramClient:
    """Synchronous Telegram Bot API client."""

    def __init__(
        self,
        bot_token: str,
        fallback_username: str = DEFAULT_BOT_USERNAME,
        force_ipv4: bool = False,
        timeout: float = 10.0,
        api_base_url: str = API_BASE_URL,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            bot_token: Token from @BotFather.
            fallback_username: Username used when getMe cannot be reached.
            force_ipv4: Bind outgoing connections to IPv4.
            timeout: Per-request timeout in seconds.
            api_base_url: Bot API base URL.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        self._bot_token = bot_token
        self.fallback_username = fallback_username
        if transport is None and force_ipv4:
            transport = httpx.HTTPTransport(local_address="0.0.0.0")
        self._client = httpx.Client(
            base_url=f"{api_base_url}/bot{bot_token}",
            timeout=timeout,
            transport=transport,
        )
        self._bot_username: str | None = None
        self._username_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def call(self, method: str, payload: dict | None = None) -> dict:
        """Call a Bot API method and return its "result".

        Raises:
            SendError: On transport errors, non-2xx responses, or ok=false.
        """
        if not self._bot_token:
            raise SendError("Telegram bot token is not configured")

        try:
            resp = self._client.post(f"/{method}", json=payload or {})
        except httpx.HTTPError as e:
            raise SendError(f"{method} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.status_code >= 400 or not data.get("ok"):
            description = data.get("description") or resp.text
            raise SendError(f"{method} failed ({resp.status_code}): {description}")

        return data.get("result", {})

    def send_message(
        self,
        chat_id: str,
        text: str,
        buttons: list[list[dict]] | None = None,
        markdown: bool = False,
    ) -> dict:
        payload: dict = {"chat_id": chat_id, "text": text}
        if markdown:
            payload["parse_mode"] = "Markdown"
        if buttons:
            payload["reply_markup"] = {"inline_keyboard": buttons}
        return self.call("sendMessage", payload)

    def answer_callback_query(self, callback_query_id: str, text: str = "") -> None:
        """Clear the button's loading state. Failures are logged, not raised."""
        try:
            self.call(
                "answerCallbackQuery",
                {"callback_query_id": callback_query_id, "text": text},
            )
        except SendError as e:
            logger.error("Failed to answer callback query: %s", e)

    def set_webhook(self, url: str, secret_token: str = "") -> dict:
        payload: dict = {"url": url, "allowed_updates": ["message", "callback_query"]}
        if secret_token:
            payload["secret_token"] = secret_token
        result = self.call("setWebhook", payload)
        logger.info("Webhook set successfully: %s", url)
        return result

    def delete_webhook(self) -> dict:
        return self.call("deleteWebhook")

    def get_bot_username(self) -> str:
        """Get the bot's @username, fetching it once via getMe.

        Falls back to the configured username if getMe fails; the fallback
        is not cached, so the next call tries again.
        """
        with self._username_lock:
            if self._bot_username:
                return self._bot_username
            try:
                result = self.call("getMe")
            except SendError as e:
                logger.error("Failed to get bot username: %s", e)
                return self.fallback_username
            username = result.get("username")
            if not username:
                return self.fallback_username
            self._bot_username = username
            return username

    def invalidate_bot_username(self) -> None:
        with self._username_lock:
            self._bot_username = None
