"""Claude Code hook registration.

taskrelay hooks live in ~/.claude/settings.json next to whatever hooks the
user already has. Every entry we add runs a `taskrelay-hook ...` command,
which is how we recognize our own entries on uninstall.
"""

from pathlib import Path

import orjson

HOOK_COMMAND_PREFIX = "taskrelay-hook"

# Claude Code hook event -> taskrelay-hook subcommand
HOOK_EVENTS = {
    "Stop": "completed",
    "Notification": "waiting",
}


def get_claude_settings_path() -> Path:
    """Get the path to Claude Code's settings.json."""
    return Path.home() / ".claude" / "settings.json"


def _load(settings_path: Path) -> dict:
    if not settings_path.exists():
        return {}
    raw = settings_path.read_bytes()
    return orjson.loads(raw) if raw else {}


def _save(settings_path: Path, settings: dict) -> None:
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_bytes(orjson.dumps(settings, option=orjson.OPT_INDENT_2))


def _commands_of(entry) -> list[str]:
    """Commands run by one hook entry ({"matcher": ..., "hooks": [...]})."""
    if not isinstance(entry, dict):
        return []
    return [h.get("command", "") for h in entry.get("hooks", []) if isinstance(h, dict)]


def _is_ours(entry) -> bool:
    return any(c.startswith(HOOK_COMMAND_PREFIX) for c in _commands_of(entry))


def install_hooks() -> None:
    """Register taskrelay hooks in Claude Code settings.

    Other settings and hooks are kept, and running this twice does not
    register anything twice.
    """
    settings_path = get_claude_settings_path()
    settings = _load(settings_path)
    hooks = settings.setdefault("hooks", {})

    for event, subcommand in HOOK_EVENTS.items():
        command = f"{HOOK_COMMAND_PREFIX} {subcommand}"
        entries = hooks.setdefault(event, [])
        if any(command in _commands_of(entry) for entry in entries):
            continue
        entries.append({"matcher": "*", "hooks": [{"type": "command", "command": command}]})

    _save(settings_path, settings)


def uninstall_hooks() -> bool:
    """Remove taskrelay hooks from Claude Code settings.

    Events left without any hook are dropped from the file.

    Returns:
        True if any taskrelay hook was removed.
    """
    settings_path = get_claude_settings_path()
    settings = _load(settings_path)
    hooks = settings.get("hooks")
    if not hooks:
        return False

    removed = False
    for event in HOOK_EVENTS:
        entries = hooks.get(event)
        if entries is None:
            continue
        kept = [entry for entry in entries if not _is_ours(entry)]
        if len(kept) != len(entries):
            removed = True
        if kept:
            hooks[event] = kept
        else:
            del hooks[event]

    _save(settings_path, settings)
    return removed
