"""Inbound dispatch: hands operator commands to the tmux injector."""

import logging
from dataclasses import dataclass
from typing import Protocol

from taskrelay.core import tmux
from taskrelay.core.errors import DispatchError

logger = logging.getLogger(__name__)


class Injector(Protocol):
    """Types a command into a terminal target."""

    def inject(self, command: str, target: str) -> None:
        """Raise DispatchError if the command could not be delivered."""
        ...


class TmuxInjector:
    """Injector that types commands into tmux sessions."""

    def __init__(self, submit_delay: float = tmux.SUBMIT_DELAY_SECONDS):
        self.submit_delay = submit_delay

    def inject(self, command: str, target: str) -> None:
        tmux.send_keys(target, command, submit=True, delay=self.submit_delay)


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    command: str
    target: str
    error: str | None = None


class Dispatcher:
    """Delivers one command once. A failure is final; the operator resends."""

    def __init__(self, injector: Injector):
        self.injector = injector

    def dispatch(self, command: str, target: str) -> DispatchResult:
        try:
            self.injector.inject(command, target)
        except DispatchError as e:
            logger.error("Command injection into %s failed: %s", target, e)
            return DispatchResult(ok=False, command=command, target=target, error=str(e))
        return DispatchResult(ok=True, command=command, target=target)
