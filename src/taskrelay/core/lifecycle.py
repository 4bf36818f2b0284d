"""Session lifecycle: the only writer of session state.

A session is created when a notification goes out, read by any number of
inbound commands, and deleted once it is found expired, revoked, swept, or
when its notification could not be delivered:

    ACTIVE -> (used 0..n times) -> EXPIRED | DELETED

Every inbound event produces exactly one reply to the originating chat,
except callbacks with payloads we don't recognize, which are ignored.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Protocol

from taskrelay.core import messages
from taskrelay.core.auth import is_authorized
from taskrelay.core.config import Settings
from taskrelay.core.dispatch import Dispatcher
from taskrelay.core.errors import (
    DuplicateTokenError,
    ParseError,
    SendError,
    TokenExpiredError,
    TokenNotFoundError,
    UnauthorizedError,
)
from taskrelay.core.parser import ReplyContext, bot_command, parse_callback, parse_command
from taskrelay.core.session import DEFAULT_TARGET, Session, TaskEvent
from taskrelay.core.store import SessionStore
from taskrelay.core.tokens import generate_token, normalize_token

logger = logging.getLogger(__name__)

# Drawing 5 colliding tokens in a row from a 36^8 space means something is wrong
MAX_TOKEN_ATTEMPTS = 5

VALID_OUTCOMES = {
    "dispatched",
    "dispatch_failed",
    "unauthorized",
    "parse_failure",
    "not_found",
    "expired",
    "info",
}


class Sender(Protocol):
    """Outbound side of the chat platform."""

    def send_message(
        self,
        chat_id: str,
        text: str,
        buttons: list[list[dict]] | None = None,
        markdown: bool = False,
    ) -> dict: ...

    def get_bot_username(self) -> str: ...


@dataclass
class InboundResult:
    """What happened to one inbound message or callback.

    Attributes:
        outcome: One of VALID_OUTCOMES
        reply: Text sent back to the chat
        markdown: Whether reply uses Markdown
        token: Token the event addressed, if one was recovered
        command: Command that was (or would have been) dispatched
        target: tmux target the command went to
    """

    outcome: str
    reply: str
    markdown: bool = False
    token: str | None = None
    command: str | None = None
    target: str | None = None

    def __post_init__(self) -> None:
        """Validate outcome."""
        if self.outcome not in VALID_OUTCOMES:
            raise ValueError(
                f"Invalid outcome: {self.outcome}. Must be one of {VALID_OUTCOMES}"
            )


class SessionManager:
    """Creates, resolves and cleans up sessions."""

    def __init__(
        self,
        store: SessionStore,
        settings: Settings,
        sender: Sender,
        dispatcher: Dispatcher,
        authorizer: Callable[[str, str], bool] | None = None,
        clock: Callable[[], float] = time.time,
        token_factory: Callable[[], str] = generate_token,
    ):
        self.store = store
        self.settings = settings
        self.sender = sender
        self.dispatcher = dispatcher
        self.authorizer = authorizer or (
            lambda user_id, chat_id: is_authorized(user_id, chat_id, settings)
        )
        self.clock = clock
        self.token_factory = token_factory

    def now(self) -> int:
        return int(self.clock())

    # --- outbound ---

    def create_session(self, event: TaskEvent, chat_id: str) -> Session:
        """Mint and persist a session for a task event.

        Raises:
            DuplicateTokenError: If MAX_TOKEN_ATTEMPTS tokens in a row collide.
        """
        created_at = self.now()
        last_error: DuplicateTokenError | None = None

        for _ in range(MAX_TOKEN_ATTEMPTS):
            session = Session(
                id=uuid.uuid4().hex,
                token=self.token_factory(),
                created_at=created_at,
                expires_at=created_at + self.settings.token_ttl_seconds,
                target=event.target or DEFAULT_TARGET,
                project=event.project,
                chat_id=str(chat_id),
                kind=event.kind,
            )
            try:
                self.store.put(session)
            except DuplicateTokenError as e:
                logger.warning("Token collision on %s, drawing a new token", e.token)
                last_error = e
                continue

            if event.has_terminal_context:
                self.store.set_current_for_chat(session.chat_id, session)
            logger.debug("Session created: %s", session.id)
            return session

        raise last_error

    def on_notification(self, event: TaskEvent) -> Session:
        """Create a session for a task event and notify the operator.

        Raises:
            SendError: If Telegram is not configured or the message could not
                be delivered. The session is removed in that case.
        """
        problems = self.settings.validate()
        if problems:
            raise SendError("; ".join(problems))

        chat_id = self.settings.notify_chat_id
        session = self.create_session(event, chat_id)

        text = messages.format_notification(event, session.token, self.settings.agent_name)
        buttons = messages.notification_buttons(
            session.token, self.settings.quick_commands
        )
        try:
            self.sender.send_message(chat_id, text, buttons=buttons, markdown=True)
        except SendError:
            self.store.delete(session.id)
            logger.debug("Session removed after failed notification: %s", session.id)
            raise

        logger.info("Telegram message sent successfully, Session: %s", session.id)
        return session

    # --- inbound ---

    def resolve_token(self, token: str) -> Session:
        """Find the live session for a token.

        Raises:
            TokenNotFoundError: If no session holds the token.
            TokenExpiredError: If the session has expired. It is deleted.
        """
        token = normalize_token(token)
        session = self.store.get_by_token(token)
        if session is None:
            raise TokenNotFoundError(token)

        if session.is_expired(self.now()):
            self.store.delete(session.id)
            logger.debug("Session removed: %s", session.id)
            raise TokenExpiredError(token)

        return session

    def lookup(self, token: str) -> Session | None:
        """Like resolve_token, but expired and missing both give None."""
        try:
            return self.resolve_token(token)
        except (TokenNotFoundError, TokenExpiredError):
            return None

    def on_inbound_command(
        self,
        user_id,
        chat_id,
        text: str,
        reply_to_bot: bool = False,
    ) -> InboundResult:
        """Handle one text message from Telegram."""
        chat_id = str(chat_id)

        try:
            self._authorize(user_id, chat_id)
        except UnauthorizedError as e:
            logger.warning("%s", e)
            return self._reply(chat_id, InboundResult("unauthorized", messages.UNAUTHORIZED))

        command = bot_command(text)
        if command == "/start":
            return self._reply(
                chat_id, InboundResult("info", messages.welcome(self.settings.agent_name))
            )
        if command == "/help":
            return self._reply(
                chat_id,
                InboundResult(
                    "info",
                    messages.help_text(
                        self.settings.token_ttl_seconds, self.settings.agent_name
                    ),
                ),
            )

        reply = None
        if reply_to_bot:
            current = self.store.get_current_for_chat(chat_id)
            reply = ReplyContext(to_bot=True, current_token=current.token if current else None)

        try:
            parsed = parse_command(text, reply)
        except ParseError as e:
            return self._reply(chat_id, InboundResult("parse_failure", str(e)))

        if parsed.form == "reply":
            logger.info("Reply mode command: %s", parsed.command)
        return self._run_command(chat_id, parsed.token, parsed.command)

    def on_callback(self, user_id, chat_id, data: str) -> InboundResult | None:
        """Handle one inline-button press.

        Returns:
            The result, or None if the payload was not recognized (no reply
            is sent in that case).
        """
        chat_id = str(chat_id)

        try:
            self._authorize(user_id, chat_id)
        except UnauthorizedError as e:
            logger.warning("%s", e)
            return self._reply(chat_id, InboundResult("unauthorized", messages.UNAUTHORIZED))

        action = parse_callback(data)
        if action is None:
            logger.debug("Ignoring unknown callback payload: %r", data)
            return None

        token = action.token
        if action.kind == "quickcmd":
            logger.info("Quick command button pressed: %s", action.command)
            return self._run_command(chat_id, token, action.command)

        if action.kind == "personal":
            result = InboundResult("info", messages.personal_format(token), markdown=True)
        elif action.kind == "group":
            username = self.sender.get_bot_username()
            result = InboundResult("info", messages.group_format(token, username), markdown=True)
        elif action.kind == "copy":
            result = InboundResult("info", messages.copy_format(token))
        elif action.kind == "format":
            result = InboundResult("info", messages.plain_format(token))
        else:
            result = InboundResult("info", messages.session_help(token), markdown=True)
        result.token = token
        return self._reply(chat_id, result)

    def _authorize(self, user_id, chat_id: str) -> None:
        if not self.authorizer(str(user_id), chat_id):
            raise UnauthorizedError(f"Unauthorized user/chat: {user_id}/{chat_id}")

    def _run_command(self, chat_id: str, token: str, command: str) -> InboundResult:
        try:
            session = self.resolve_token(token)
        except TokenNotFoundError:
            return self._reply(
                chat_id,
                InboundResult("not_found", messages.INVALID_TOKEN, token=token, command=command),
            )
        except TokenExpiredError:
            return self._reply(
                chat_id,
                InboundResult("expired", messages.EXPIRED_TOKEN, token=token, command=command),
            )

        outcome = self.dispatcher.dispatch(command, session.target)
        if outcome.ok:
            logger.info(
                "Command injected - User: %s, Token: %s, Command: %s", chat_id, token, command
            )
            result = InboundResult(
                "dispatched",
                messages.command_sent(command, session.target, self.settings.agent_name),
                markdown=True,
            )
        else:
            result = InboundResult(
                "dispatch_failed", messages.command_failed(outcome.error or "unknown error"),
                markdown=True,
            )
        result.token = token
        result.command = command
        result.target = session.target
        return self._reply(chat_id, result)

    def _reply(self, chat_id: str, result: InboundResult) -> InboundResult:
        try:
            self.sender.send_message(chat_id, result.reply, markdown=result.markdown)
        except SendError as e:
            logger.error("Failed to send message to %s: %s", chat_id, e)
        return result

    # --- operator cleanup ---

    def revoke(self, token: str) -> bool:
        """Delete the session holding a token. Returns False if none did."""
        session = self.store.get_by_token(token)
        if session is None:
            return False
        return self.store.delete(session.id)

    def sweep(self) -> int:
        """Delete all expired sessions. Returns how many were removed."""
        removed = self.store.delete_expired(self.now())
        if removed:
            logger.info("Swept %d expired sessions", removed)
        return removed
