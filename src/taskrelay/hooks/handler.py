"""Hook handler for Claude Code integration.

This module provides the `taskrelay-hook` CLI command that Claude Code
calls when a task finishes (Stop hook) or when it needs input
(Notification hook).

Entry point defined in pyproject.toml:
    taskrelay-hook = "taskrelay.hooks.handler:main"

A hook must never break the agent: failures are logged to stderr and the
command still exits 0.
"""

import logging
import os
import sqlite3
import sys
from pathlib import Path

import click
import orjson

from taskrelay.core.errors import RelayError
from taskrelay.core.session import TaskEvent
from taskrelay.core.tmux import get_current_session
from taskrelay.factory import create_manager

logger = logging.getLogger(__name__)


def read_stdin_json() -> dict:
    """Read and parse JSON from stdin."""
    try:
        data = sys.stdin.read()
        if not data:
            return {}
        parsed = orjson.loads(data)
        return parsed if isinstance(parsed, dict) else {}
    except (orjson.JSONDecodeError, ValueError):
        return {}


def _text_of(content) -> str:
    """Join the text blocks of a transcript message content."""
    if isinstance(content, str):
        return content
    text_parts = []
    for block in content or []:
        if isinstance(block, dict) and block.get("type") == "text":
            text_parts.append(block.get("text", ""))
        elif isinstance(block, str):
            text_parts.append(block)
    return "\n".join(text_parts)


def extract_conversation(transcript_path: str) -> tuple[str, str]:
    """Extract the last user prompt and final assistant response.

    Args:
        transcript_path: Path to the conversation transcript (.jsonl)

    Returns:
        (question, response); either is "" if not found. User entries that
        only carry tool results are not prompts and are skipped.
    """
    path = Path(transcript_path).expanduser()
    if not path.exists():
        return "", ""

    question = ""
    response = ""

    with path.open(encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = orjson.loads(line)
                message = entry.get("message", {})
                text = _text_of(message.get("content", []))
            except (orjson.JSONDecodeError, AttributeError, TypeError):
                continue
            if not text:
                continue
            if entry.get("type") == "user":
                question = text
            elif entry.get("type") == "assistant":
                response = text

    return question, response


def build_event(kind: str, data: dict) -> TaskEvent:
    """Turn a hook payload into a task event."""
    cwd = data.get("cwd") or os.getcwd()
    question, response = "", ""
    if transcript_path := data.get("transcript_path"):
        question, response = extract_conversation(transcript_path)

    # Notification hooks say what the agent is waiting for
    if kind == "waiting" and data.get("message"):
        response = data["message"]

    return TaskEvent(
        kind=kind,
        project=Path(cwd).name or str(cwd),
        question=question,
        response=response,
        target=get_current_session(),
    )


def _notify(kind: str) -> None:
    try:
        event = build_event(kind, read_stdin_json())
        session = create_manager().on_notification(event)
    except (RelayError, ValueError, OSError, sqlite3.Error) as e:
        logger.warning("Notification not sent: %s", e)
        return
    logger.info("Notified %s for %s with token %s", kind, event.project, session.token)


@click.group()
def main() -> None:
    """Hook handler for Claude Code integration."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
    )


@main.command()
def completed() -> None:
    """Handle Stop hook - notify that the task is complete."""
    _notify("completed")


@main.command()
def waiting() -> None:
    """Handle Notification hook - notify that the agent needs input."""
    _notify("waiting")


if __name__ == "__main__":
    main()
