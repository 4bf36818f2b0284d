"""Shared pytest fixtures for taskrelay tests."""

import pytest

from taskrelay.core.config import ENV_OVERRIDES, Settings
from taskrelay.core.dispatch import Dispatcher
from taskrelay.core.errors import DispatchError, SendError
from taskrelay.core.lifecycle import SessionManager
from taskrelay.core.store import SessionStore

START_TIME = 1_700_000_000


class FakeSender:
    """Records outbound messages instead of calling Telegram."""

    def __init__(self, username: str = "relay_bot"):
        self.sent: list[dict] = []
        self.fail = False
        self.username = username
        self.username_calls = 0

    def send_message(self, chat_id, text, buttons=None, markdown=False) -> dict:
        if self.fail:
            raise SendError("sendMessage failed (502): Bad Gateway")
        self.sent.append(
            {"chat_id": str(chat_id), "text": text, "buttons": buttons, "markdown": markdown}
        )
        return {"message_id": len(self.sent)}

    def get_bot_username(self) -> str:
        self.username_calls += 1
        return self.username

    @property
    def last(self) -> dict:
        return self.sent[-1]


class FakeInjector:
    """Records injected commands; raises DispatchError when error is set."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.error: str | None = None

    def inject(self, command: str, target: str) -> None:
        self.calls.append((command, target))
        if self.error:
            raise DispatchError(self.error)


class FakeClock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def relay_home(tmp_path, monkeypatch):
    """Point TASKRELAY_HOME at a temp dir and clear Telegram env vars.

    This ensures tests never read or write the real ~/.taskrelay/.
    """
    home = tmp_path / "relay-home"
    monkeypatch.setenv("TASKRELAY_HOME", str(home))
    for env_var in ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("TMUX", raising=False)
    monkeypatch.delenv("TASKRELAY_TMUX_SOCKET", raising=False)
    return home


@pytest.fixture
def settings():
    return Settings(
        bot_token="123456:test-token",
        chat_id="111",
        token_ttl_seconds=3600,
    )


@pytest.fixture
def store(tmp_path):
    s = SessionStore(tmp_path / "sessions.db")
    yield s
    s.close()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def injector():
    return FakeInjector()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(store, settings, sender, injector, clock):
    return SessionManager(
        store=store,
        settings=settings,
        sender=sender,
        dispatcher=Dispatcher(injector),
        clock=clock,
    )
