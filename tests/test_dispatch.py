"""Tests for command dispatch."""

from taskrelay.core.dispatch import Dispatcher, DispatchResult, TmuxInjector
from taskrelay.core.tmux import TmuxError


def test_dispatch_success(injector):
    result = Dispatcher(injector).dispatch("run tests", "work")

    assert result == DispatchResult(ok=True, command="run tests", target="work")
    assert injector.calls == [("run tests", "work")]


def test_dispatch_failure_is_reported_not_raised(injector):
    injector.error = "tmux session 'work' not found"

    result = Dispatcher(injector).dispatch("run tests", "work")

    assert not result.ok
    assert result.error == "tmux session 'work' not found"
    assert injector.calls == [("run tests", "work")]


def test_tmux_injector_sends_keys(monkeypatch):
    calls = []

    def fake_send_keys(target, keys, submit=True, delay=0.5):
        calls.append((target, keys, submit, delay))

    monkeypatch.setattr("taskrelay.core.dispatch.tmux.send_keys", fake_send_keys)

    TmuxInjector(submit_delay=0).inject("run tests", "agents:1")

    assert calls == [("agents:1", "run tests", True, 0)]


def test_tmux_injector_failure_becomes_result(monkeypatch):
    def failing_send_keys(target, keys, submit=True, delay=0.5):
        raise TmuxError(f"tmux session '{target}' not found")

    monkeypatch.setattr("taskrelay.core.dispatch.tmux.send_keys", failing_send_keys)

    result = Dispatcher(TmuxInjector()).dispatch("run tests", "ghost")

    assert not result.ok
    assert "ghost" in result.error
