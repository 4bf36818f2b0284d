"""Command grammar for operator replies.

Operators type commands by hand, paste button-suggested text, reply to bot
messages, and mention the bot in groups. All of those shapes reduce to a
(token, command) pair here. Forms are tried in a fixed priority order:

    reply-shortcut > /cmdTOKEN cmd > /cmd TOKEN cmd > TOKEN cmd

Button payloads (callback_data) have their own small grammar, decoded by
parse_callback().
"""

import re
from dataclasses import dataclass

from taskrelay.core.errors import ParseError
from taskrelay.core.tokens import TOKEN_LENGTH, normalize_token

USAGE_HINT = (
    "❌ Invalid format. Use:\n"
    "/cmdTOKEN command\n\n"
    "Example:\n"
    "/cmdABC12345 analyze this code"
)

# Leading "@botname " in group chats
_MENTION_RE = re.compile(r"^@\w+\s+")

# "/help" or "/help@botname" with nothing after it
_BOT_COMMAND_RE = re.compile(r"^(/[A-Za-z]+)(?:@\w+)?$")

# (form name, pattern). Order is the priority order.
COMMAND_FORMS: list[tuple[str, re.Pattern[str]]] = [
    (
        "attached",
        re.compile(
            rf"^/cmd(?P<token>[A-Za-z0-9]{{{TOKEN_LENGTH}}})(?:@\w+)?\s+(?P<command>.+)$",
            re.DOTALL,
        ),
    ),
    (
        "spaced",
        re.compile(
            rf"^/cmd(?:@\w+)?\s+(?P<token>[A-Za-z0-9]{{{TOKEN_LENGTH}}})\s+(?P<command>.+)$",
            re.DOTALL,
        ),
    ),
    # Bare tokens must be typed uppercase, otherwise any 8-letter word
    # starting a sentence would be read as a token.
    (
        "bare",
        re.compile(
            rf"^(?P<token>[A-Z0-9]{{{TOKEN_LENGTH}}})\s+(?P<command>.+)$",
            re.DOTALL,
        ),
    ),
]

CALLBACK_KINDS = {"personal", "group", "copy", "format", "quickcmd", "session"}


@dataclass(frozen=True)
class ReplyContext:
    """What is known about the message an inbound text replies to.

    Attributes:
        to_bot: The inbound message is a reply to a message the bot sent
        current_token: Token of the chat's current session, if any
    """

    to_bot: bool = False
    current_token: str | None = None


@dataclass(frozen=True)
class ParsedCommand:
    """A (token, command) pair recovered from chat text.

    Attributes:
        token: Uppercase session token
        command: Text to inject, uninterpreted
        form: Which grammar alternative matched ("reply", "attached",
            "spaced" or "bare")
    """

    token: str
    command: str
    form: str


@dataclass(frozen=True)
class CallbackAction:
    """A decoded inline-button payload."""

    kind: str
    token: str
    command: str = ""


def parse_command(text: str, reply: ReplyContext | None = None) -> ParsedCommand:
    """Recover (token, command) from chat text.

    Args:
        text: Raw message text.
        reply: Reply context of the message, if it was a reply.

    Returns:
        The parsed command.

    Raises:
        ParseError: If no form matches. The message is the usage hint.
    """
    text = text.strip()
    if not text:
        raise ParseError(USAGE_HINT)

    if reply is not None and reply.to_bot and reply.current_token:
        return ParsedCommand(
            token=normalize_token(reply.current_token), command=text, form="reply"
        )

    text = _MENTION_RE.sub("", text, count=1)

    for form, pattern in COMMAND_FORMS:
        match = pattern.match(text)
        if match:
            command = match.group("command").strip()
            if command:
                return ParsedCommand(
                    token=normalize_token(match.group("token")),
                    command=command,
                    form=form,
                )

    raise ParseError(USAGE_HINT)


def bot_command(text: str) -> str | None:
    """Return the bare bot command ("/start", "/help") a message consists of.

    A leading "@botname " mention and a "@botname" suffix are ignored, so
    group chat forms resolve the same as private ones.
    """
    text = _MENTION_RE.sub("", text.strip(), count=1)
    match = _BOT_COMMAND_RE.match(text)
    return match.group(1) if match else None


def parse_callback(data: str) -> CallbackAction | None:
    """Decode a callback_data payload.

    Recognized payloads:
        personal:TOKEN, group:TOKEN, copy:TOKEN, format:TOKEN,
        session:TOKEN, quickcmd:TOKEN:command

    Returns:
        The decoded action, or None for unknown or malformed payloads.
    """
    if not data or ":" not in data:
        return None

    kind, _, rest = data.partition(":")
    if kind not in CALLBACK_KINDS:
        return None

    if kind == "quickcmd":
        # The command may itself contain ':'
        token, _, command = rest.partition(":")
        if not token or not command:
            return None
        return CallbackAction(kind=kind, token=normalize_token(token), command=command)

    token = rest.split(":", 1)[0]
    if not token:
        return None
    return CallbackAction(kind=kind, token=normalize_token(token))
