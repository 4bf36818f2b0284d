"""Text of every message taskrelay sends to Telegram.

Messages marked Markdown use Telegram's legacy Markdown parse mode; any
text that came from the agent or the operator goes through escape_markdown.
"""

from taskrelay.core.session import TaskEvent

# Telegram rejects messages over 4096 characters; keep a margin for markup
MAX_MESSAGE_LENGTH = 4000
MAX_QUESTION_LENGTH = 500

# Telegram's limit on callback_data
MAX_CALLBACK_BYTES = 64

UNAUTHORIZED = "⚠️ You are not authorized to use this bot."
INVALID_TOKEN = "❌ Invalid or expired token. Please wait for a new task notification."
EXPIRED_TOKEN = "❌ Token has expired. Please wait for a new task notification."
INTERNAL_ERROR = "❌ Something went wrong while handling your message. Please try again."

_MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """Escape text for Telegram legacy Markdown."""
    for char in _MARKDOWN_SPECIAL:
        text = text.replace(char, "\\" + char)
    return text


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def format_duration(seconds: int) -> str:
    """Render a TTL for humans, e.g. 86400 -> "24 hours", 604800 -> "7 days"."""
    if seconds % 86400 == 0 and seconds >= 2 * 86400:
        return f"{seconds // 86400} days"
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return "1 hour" if hours == 1 else f"{hours} hours"
    if seconds % 60 == 0:
        minutes = seconds // 60
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"


def format_notification(event: TaskEvent, token: str, agent_name: str = "Claude") -> str:
    """Build the Markdown notification for a task event.

    The question gets at most 30% of the free space (and never more than
    MAX_QUESTION_LENGTH); the response gets the rest.
    """
    if event.kind == "completed":
        header = f"✅ *{agent_name} Task Completed*\n"
    else:
        header = f"⏳ *{agent_name} Task Waiting for Input*\n"
    header += f"*Project:* {escape_markdown(event.project)}\n"
    header += f"*Session Token:* `{token}`\n\n"

    footer = "💬 *To send a new command:*\n"
    footer += f"Reply with: `/cmd {token} <your command>`\n"
    footer += f"Example: `/cmd {token} Please analyze this code`"

    question_header = "📝 *Your Question:*\n"
    response_header = f"🤖 *{agent_name} Response:*\n"
    separator = "\n\n"

    body = ""
    remaining = MAX_MESSAGE_LENGTH - len(header) - len(footer)

    if remaining > 100:
        if event.question and remaining > 50:
            header_length = len(question_header) + len(separator)
            max_question = min(MAX_QUESTION_LENGTH, int(remaining * 0.3) - header_length)
            if max_question > 20:
                question = _truncate(escape_markdown(event.question), max_question)
                body += question_header + question + separator
                remaining -= header_length + len(question)

        if event.response and remaining > 50:
            header_length = len(response_header) + len(separator)
            max_response = remaining - header_length - 10
            if max_response > 20:
                response = _truncate(escape_markdown(event.response), max_response)
                body += response_header + response + separator

    return header + body + footer


def notification_buttons(token: str, quick_commands: list[str] | None = None) -> list[list[dict]]:
    """Inline keyboard for a notification.

    Quick commands whose payload would exceed Telegram's callback_data limit
    are left out.
    """
    buttons = [
        [
            {"text": "📝 Personal Chat", "callback_data": f"personal:{token}"},
            {"text": "👥 Group Chat", "callback_data": f"group:{token}"},
        ]
    ]
    for command in quick_commands or []:
        payload = f"quickcmd:{token}:{command}"
        if len(payload.encode()) > MAX_CALLBACK_BYTES:
            continue
        buttons.append([{"text": f"⚡ {command}", "callback_data": payload}])
    return buttons


def command_sent(command: str, target: str, agent_name: str = "Claude") -> str:
    return (
        "✅ *Command sent successfully*\n\n"
        f"📝 *Command:* {escape_markdown(command)}\n"
        f"🖥️ *Session:* {escape_markdown(target)}\n\n"
        f"{agent_name} is now processing your request..."
    )


def command_failed(reason: str) -> str:
    return f"❌ *Command execution failed:* {escape_markdown(reason)}"


def welcome(agent_name: str = "Claude") -> str:
    return (
        f"🤖 Welcome to {agent_name} Code Remote Bot!\n\n"
        f"I'll notify you when {agent_name} completes tasks or needs input.\n\n"
        "When you receive a notification with a token, you can send commands back using:\n"
        "/cmdTOKEN your command\n\n"
        "Type /help for more information."
    )


def help_text(token_ttl_seconds: int, agent_name: str = "Claude") -> str:
    return (
        f"📚 {agent_name} Code Remote Bot Help\n\n"
        "Commands:\n"
        "• /start - Welcome message\n"
        "• /help - Show this help\n"
        f"• /cmdTOKEN command - Send command to {agent_name}\n\n"
        "Example:\n"
        "/cmdABC12345 analyze the performance of this function\n\n"
        "Tips:\n"
        "• Tokens are case-insensitive\n"
        f"• Tokens persist for {format_duration(token_ttl_seconds)}\n"
        "• You can also just type TOKEN command without /cmd\n"
        "• Reply to a notification to send a command without the token"
    )


def personal_format(token: str) -> str:
    return (
        "📝 *Personal Chat Command Format:*\n\n"
        f"`/cmd {token} <your command>`\n\n"
        "*Example:*\n"
        f"`/cmd {token} please analyze this code`\n\n"
        "💡 *Copy and paste the format above, then add your command!*"
    )


def group_format(token: str, bot_username: str) -> str:
    return (
        "👥 *Group Chat Command Format:*\n\n"
        f"`@{bot_username} /cmd {token} <your command>`\n\n"
        "*Example:*\n"
        f"`@{bot_username} /cmd {token} please analyze this code`\n\n"
        "💡 *Copy and paste the format above, then add your command!*"
    )


def copy_format(token: str) -> str:
    return (
        "📋 Copy this command format:\n\n"
        f"/cmd{token} \n\n"
        "Then add your command and send!\n\n"
        f"Example: /cmd{token} please analyze this code"
    )


def plain_format(token: str) -> str:
    return (
        "📝 Command Format:\n\n"
        f"/cmd{token} [your command]\n\n"
        "Example:\n"
        f"/cmd{token} please analyze this code\n\n"
        "💡 Copy and paste the format above, then add your command!"
    )


def session_help(token: str) -> str:
    return (
        "📝 *How to send a command:*\n\n"
        "Type:\n"
        f"`/cmd {token} <your command>`\n\n"
        "Example:\n"
        f"`/cmd {token} please analyze this code`\n\n"
        "💡 *Tip:* New notifications have a button that auto-fills the command for you!"
    )
