"""Authorization of inbound Telegram callers."""

from taskrelay.core.config import Settings


def is_authorized(user_id, chat_id, settings: Settings) -> bool:
    """Check whether a Telegram user/chat may send commands.

    A caller is allowed if either its chat id or user id is on the
    whitelist. With no whitelist configured, only the configured chat
    (or the group, when no chat is configured) is allowed.
    """
    whitelist = settings.whitelist
    if str(chat_id) in whitelist or str(user_id) in whitelist:
        return True

    if not whitelist:
        configured = settings.chat_id or settings.group_id
        if configured and str(chat_id) == configured:
            return True

    return False
