"""Tests for the session lifecycle manager."""

from unittest.mock import MagicMock

import pytest

from taskrelay.core import messages
from taskrelay.core.config import Settings
from taskrelay.core.dispatch import Dispatcher
from taskrelay.core.errors import DuplicateTokenError, SendError
from taskrelay.core.lifecycle import SessionManager
from taskrelay.core.parser import USAGE_HINT
from taskrelay.core.session import DEFAULT_TARGET, Session, TaskEvent


def completed_event(target="work", **kwargs) -> TaskEvent:
    return TaskEvent(kind="completed", project="repo-x", target=target, **kwargs)


def test_notification_creates_session(manager, store, sender, settings, clock):
    """A notification persists a session and sends its token."""
    session = manager.on_notification(completed_event())

    assert store.get_by_token(session.token).id == session.id
    assert session.created_at == clock.now
    assert session.expires_at == clock.now + settings.token_ttl_seconds
    assert session.target == "work"
    assert session.project == "repo-x"
    assert session.chat_id == "111"

    assert len(sender.sent) == 1
    sent = sender.last
    assert sent["chat_id"] == "111"
    assert sent["markdown"] is True
    assert session.token in sent["text"]
    assert sent["buttons"][0][0]["callback_data"] == f"personal:{session.token}"


def test_notification_goes_to_group_when_configured(manager, sender, settings):
    settings.group_id = "-100500"
    session = manager.on_notification(completed_event())

    assert sender.last["chat_id"] == "-100500"
    assert session.chat_id == "-100500"


def test_notification_sets_current_session(manager, store):
    """Sessions with a terminal target become the chat's reply target."""
    session = manager.on_notification(completed_event())
    assert store.get_current_for_chat("111").id == session.id


def test_notification_without_terminal_keeps_current(manager, store):
    first = manager.on_notification(completed_event())
    second = manager.on_notification(completed_event(target=None))

    assert second.target == DEFAULT_TARGET
    assert store.get_current_for_chat("111").id == first.id


def test_notification_send_failure_removes_session(manager, store, sender):
    """No usable token is left behind if the operator never saw it."""
    sender.fail = True

    with pytest.raises(SendError):
        manager.on_notification(completed_event())

    assert store.list_sessions() == []
    assert store.get_current_for_chat("111") is None


def test_notification_unconfigured(store, sender, injector, clock):
    manager = SessionManager(
        store=store,
        settings=Settings(),
        sender=sender,
        dispatcher=Dispatcher(injector),
        clock=clock,
    )

    with pytest.raises(SendError, match="bot token"):
        manager.on_notification(completed_event())

    assert store.list_sessions() == []
    assert sender.sent == []


def test_create_session_retries_on_collision(manager, store):
    """A colliding token is replaced by a fresh draw."""
    store.put(
        Session(
            id="taken",
            token="TAKEN123",
            created_at=manager.now(),
            expires_at=manager.now() + 100,
        )
    )
    draws = iter(["TAKEN123", "FRESH123"])
    manager.token_factory = lambda: next(draws)

    session = manager.create_session(completed_event(), "111")

    assert session.token == "FRESH123"
    assert store.get_by_token("TAKEN123").id == "taken"


def test_create_session_gives_up_after_repeated_collisions(manager, store):
    store.put(
        Session(
            id="taken",
            token="TAKEN123",
            created_at=manager.now(),
            expires_at=manager.now() + 100,
        )
    )
    manager.token_factory = lambda: "TAKEN123"

    with pytest.raises(DuplicateTokenError):
        manager.create_session(completed_event(), "111")

    assert len(store.list_sessions()) == 1


def test_inbound_command_end_to_end(manager, sender, injector):
    """Notify, then reply with the token: the command reaches the target."""
    session = manager.on_notification(completed_event())
    token = session.token

    result = manager.on_inbound_command("111", "111", f"/cmd {token} run tests")

    assert result.outcome == "dispatched"
    assert result.token == token
    assert result.command == "run tests"
    assert result.target == "work"
    assert injector.calls == [("run tests", "work")]
    assert "run tests" in sender.last["text"]
    assert "work" in sender.last["text"]


@pytest.mark.parametrize(
    "template",
    ["/cmd{token} run tests", "/cmd {token} run tests", "{token} run tests"],
)
def test_inbound_command_forms_dispatch_once(manager, injector, template):
    session = manager.on_notification(completed_event())

    result = manager.on_inbound_command("111", "111", template.format(token=session.token))

    assert result.outcome == "dispatched"
    assert injector.calls == [("run tests", "work")]


def test_inbound_lowercase_token(manager, injector):
    session = manager.on_notification(completed_event())

    result = manager.on_inbound_command("111", "111", f"/cmd {session.token.lower()} go")

    assert result.outcome == "dispatched"
    assert injector.calls == [("go", "work")]


def test_token_reusable_until_expiry(manager, injector, clock):
    """Tokens are not consumed by use."""
    session = manager.on_notification(completed_event())

    for command in ("one", "two", "three"):
        clock.advance(60)
        result = manager.on_inbound_command("111", "111", f"/cmd {session.token} {command}")
        assert result.outcome == "dispatched"

    assert [c for c, _ in injector.calls] == ["one", "two", "three"]


def test_expired_token(manager, store, sender, injector, clock, settings):
    """One second after expiry the token is rejected and the session deleted."""
    session = manager.on_notification(completed_event())
    clock.advance(settings.token_ttl_seconds + 1)

    result = manager.on_inbound_command("111", "111", f"/cmd {session.token} run tests")

    assert result.outcome == "expired"
    assert sender.last["text"] == messages.EXPIRED_TOKEN
    assert injector.calls == []
    assert store.get_by_id(session.id) is None
    assert manager.lookup(session.token) is None


def test_token_expires_exactly_at_expiry(manager, injector, clock, settings):
    session = manager.on_notification(completed_event())
    clock.advance(settings.token_ttl_seconds - 1)
    assert manager.lookup(session.token) is not None

    clock.advance(1)
    result = manager.on_inbound_command("111", "111", f"/cmd {session.token} go")

    assert result.outcome == "expired"
    assert injector.calls == []


def test_unknown_token(manager, sender, injector):
    result = manager.on_inbound_command("111", "111", "/cmd NOPE1234 run tests")

    assert result.outcome == "not_found"
    assert sender.last["text"] == messages.INVALID_TOKEN
    assert injector.calls == []


def test_parse_failure_replies_with_usage(manager, sender, injector):
    result = manager.on_inbound_command("111", "111", "please run the tests")

    assert result.outcome == "parse_failure"
    assert sender.last["text"] == USAGE_HINT
    assert injector.calls == []


def test_unauthorized_short_circuits(manager, store, sender, injector, monkeypatch):
    """Unauthorized callers never reach the parser, store or injector."""
    session = manager.on_notification(completed_event())
    parse_spy = MagicMock()
    monkeypatch.setattr("taskrelay.core.lifecycle.parse_command", parse_spy)
    manager.store = MagicMock(wraps=store)

    result = manager.on_inbound_command("999", "999", f"/cmd {session.token} rm -rf /")

    assert result.outcome == "unauthorized"
    assert sender.last["chat_id"] == "999"
    assert sender.last["text"] == messages.UNAUTHORIZED
    assert parse_spy.call_count == 0
    assert manager.store.method_calls == []
    assert injector.calls == []


def test_whitelisted_user_in_other_chat(manager, settings, injector):
    settings.whitelist = ["555"]
    session = manager.on_notification(completed_event())

    result = manager.on_inbound_command("555", "-100777", f"/cmd {session.token} go")

    assert result.outcome == "dispatched"
    assert injector.calls == [("go", "work")]


def test_start_and_help(manager, sender):
    result = manager.on_inbound_command("111", "111", "/start")
    assert result.outcome == "info"
    assert "Welcome" in sender.last["text"]

    result = manager.on_inbound_command("111", "111", "/help")
    assert result.outcome == "info"
    assert "Tokens persist for 1 hour" in sender.last["text"]


@pytest.mark.parametrize("text", ["/help@relay_bot", "@relay_bot /help", "  /help  "])
def test_help_in_group_forms(manager, sender, injector, text):
    result = manager.on_inbound_command("111", "111", text)

    assert result.outcome == "info"
    assert "Tokens persist for 1 hour" in sender.last["text"]
    assert injector.calls == []


def test_start_with_mention(manager, sender):
    result = manager.on_inbound_command("111", "111", "/start@relay_bot")
    assert result.outcome == "info"
    assert "Welcome" in sender.last["text"]


def test_reply_to_bot_uses_current_session(manager, injector):
    manager.on_notification(completed_event(target="agents:1"))

    result = manager.on_inbound_command("111", "111", "continue", reply_to_bot=True)

    assert result.outcome == "dispatched"
    assert injector.calls == [("continue", "agents:1")]


def test_reply_to_bot_without_current_session(manager, injector):
    result = manager.on_inbound_command("111", "111", "continue", reply_to_bot=True)

    assert result.outcome == "parse_failure"
    assert injector.calls == []


def test_dispatch_failure_reported(manager, sender, injector):
    session = manager.on_notification(completed_event())
    injector.error = "tmux session 'work' not found"

    result = manager.on_inbound_command("111", "111", f"/cmd {session.token} go")

    assert result.outcome == "dispatch_failed"
    assert len(injector.calls) == 1
    assert "Command execution failed" in sender.last["text"]
    # The session survives a failed dispatch
    assert manager.lookup(session.token) is not None


def test_reply_send_failure_is_not_raised(manager, sender, injector):
    session = manager.on_notification(completed_event())
    sender.fail = True

    result = manager.on_inbound_command("111", "111", f"/cmd {session.token} go")

    assert result.outcome == "dispatched"
    assert injector.calls == [("go", "work")]


def test_callback_personal(manager, sender):
    result = manager.on_callback("111", "111", "personal:abc12345")

    assert result.outcome == "info"
    assert result.token == "ABC12345"
    assert "/cmd ABC12345" in sender.last["text"]
    assert sender.last["markdown"] is True


def test_callback_group_uses_bot_username(manager, sender):
    manager.on_callback("111", "111", "group:ABC12345")

    assert sender.username_calls == 1
    assert "@relay_bot /cmd ABC12345" in sender.last["text"]


@pytest.mark.parametrize("kind", ["copy", "format", "session"])
def test_callback_help_kinds(manager, sender, kind):
    result = manager.on_callback("111", "111", f"{kind}:ABC12345")

    assert result.outcome == "info"
    assert "ABC12345" in sender.last["text"]


def test_callback_quickcmd_dispatches(manager, injector):
    session = manager.on_notification(completed_event())

    result = manager.on_callback("111", "111", f"quickcmd:{session.token}:run tests")

    assert result.outcome == "dispatched"
    assert injector.calls == [("run tests", "work")]


def test_callback_quickcmd_expired(manager, injector, clock, settings):
    session = manager.on_notification(completed_event())
    clock.advance(settings.token_ttl_seconds)

    result = manager.on_callback("111", "111", f"quickcmd:{session.token}:run tests")

    assert result.outcome == "expired"
    assert injector.calls == []


def test_callback_unknown_payload_ignored(manager, sender):
    assert manager.on_callback("111", "111", "mystery:ABC12345") is None
    assert sender.sent == []


def test_callback_unauthorized(manager, sender, injector, monkeypatch):
    parse_spy = MagicMock()
    monkeypatch.setattr("taskrelay.core.lifecycle.parse_callback", parse_spy)

    result = manager.on_callback("999", "999", "quickcmd:ABC12345:rm -rf /")

    assert result.outcome == "unauthorized"
    assert parse_spy.call_count == 0
    assert injector.calls == []
    assert sender.last["text"] == messages.UNAUTHORIZED


def test_revoke(manager, injector):
    session = manager.on_notification(completed_event())

    assert manager.revoke(session.token.lower()) is True
    assert manager.revoke(session.token) is False

    result = manager.on_inbound_command("111", "111", f"/cmd {session.token} go")
    assert result.outcome == "not_found"
    assert injector.calls == []


def test_sweep(manager, store, clock, settings):
    old = manager.on_notification(completed_event())
    clock.advance(settings.token_ttl_seconds)
    fresh = manager.on_notification(completed_event())

    assert manager.sweep() == 1
    assert store.get_by_id(old.id) is None
    assert store.get_by_id(fresh.id) is not None
