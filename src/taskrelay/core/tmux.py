"""tmux wrapper for taskrelay.

Finds the tmux session an agent runs in and types operator commands into
it. Injections into the same target are serialized so two commands never
interleave keystrokes.
"""

import os
import subprocess
import threading
import time

from taskrelay.core.errors import DispatchError

# Socket name for tmux isolation (used for testing)
# Set TASKRELAY_TMUX_SOCKET to use a separate tmux server
TMUX_SOCKET_ENV = "TASKRELAY_TMUX_SOCKET"

# Pause between typing a command and pressing Enter
SUBMIT_DELAY_SECONDS = 0.5

_send_locks: dict[str, threading.Lock] = {}
_send_locks_guard = threading.Lock()


def _tmux_cmd(args: list[str]) -> list[str]:
    """Build a tmux command, optionally with a custom socket.

    If TASKRELAY_TMUX_SOCKET is set, adds -L <socket> to use an isolated server.
    """
    socket = os.environ.get(TMUX_SOCKET_ENV)
    if socket:
        return ["tmux", "-L", socket] + args
    return ["tmux"] + args


class TmuxError(DispatchError):
    """Raised when a tmux command fails."""

    pass


def _get_send_lock(target: str) -> threading.Lock:
    """Get or create the lock for a tmux target."""
    with _send_locks_guard:
        if target not in _send_locks:
            _send_locks[target] = threading.Lock()
        return _send_locks[target]


def is_installed() -> bool:
    """Check if tmux is installed on the system.

    Returns:
        True if tmux is installed and accessible, False otherwise.
    """
    try:
        result = subprocess.run(
            _tmux_cmd(["-V"]),
            capture_output=True,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def in_tmux() -> bool:
    """Check if we're running inside a tmux session."""
    return os.environ.get("TMUX") is not None


def get_current_session() -> str | None:
    """Get the name of the current tmux session.

    Returns:
        Session name if running inside tmux, None otherwise.
    """
    if not in_tmux():
        return None
    try:
        result = subprocess.run(
            _tmux_cmd(["display-message", "-p", "#S"]),
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None
    if result.returncode == 0:
        return result.stdout.strip() or None
    return None


def has_session(name: str) -> bool:
    """Check if a tmux session exists.

    Args:
        name: Session name (or target) to check.

    Returns:
        True if session exists, False otherwise.
    """
    try:
        result = subprocess.run(
            _tmux_cmd(["has-session", "-t", name]),
            capture_output=True,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def _run(args: list[str], action: str) -> None:
    try:
        result = subprocess.run(_tmux_cmd(args), capture_output=True, text=True)
    except FileNotFoundError as e:
        raise TmuxError("tmux is not installed") from e
    if result.returncode != 0:
        raise TmuxError(f"Failed to {action}: {result.stderr.strip()}")


def send_keys(
    target: str,
    keys: str,
    submit: bool = True,
    delay: float = SUBMIT_DELAY_SECONDS,
) -> None:
    """Type text into a tmux target, replacing whatever is on the prompt.

    Args:
        target: The tmux target (e.g., "my-session" or "my-session:0").
        keys: The text to type. Sent literally, never interpreted as key names.
        submit: Whether to send C-m (Enter) after the text.
        delay: Seconds to wait before submitting.

    Raises:
        TmuxError: If the target does not exist or a tmux command fails.
    """
    if not has_session(target):
        raise TmuxError(f"tmux session '{target}' not found")

    with _get_send_lock(target):
        # C-u clears any half-typed input on the prompt line
        _run(["send-keys", "-t", target, "C-u"], "clear prompt")
        _run(["send-keys", "-t", target, "-l", keys], "send keys")

        if submit:
            time.sleep(delay)
            # C-m (Ctrl+M) is carriage return - submits in Claude Code
            _run(["send-keys", "-t", target, "C-m"], "send C-m")
