"""taskrelay configuration management.

Settings come from ~/.taskrelay/config.json, overridden by environment
variables. TASKRELAY_HOME moves the whole data directory.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

import orjson

DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60
DEFAULT_PORT = 3001
DEFAULT_BOT_USERNAME = "claude_remote_bot"

# setting name -> environment variable
ENV_OVERRIDES = {
    "bot_token": "TELEGRAM_BOT_TOKEN",
    "chat_id": "TELEGRAM_CHAT_ID",
    "group_id": "TELEGRAM_GROUP_ID",
    "whitelist": "TELEGRAM_WHITELIST",
    "bot_username": "TELEGRAM_BOT_USERNAME",
    "webhook_secret": "TELEGRAM_WEBHOOK_SECRET",
    "webhook_url": "TELEGRAM_WEBHOOK_URL",
    "port": "TELEGRAM_WEBHOOK_PORT",
    "force_ipv4": "TELEGRAM_FORCE_IPV4",
    "token_ttl_seconds": "TASKRELAY_TOKEN_TTL",
    "legacy_sessions_dir": "TASKRELAY_LEGACY_SESSIONS",
    "agent_name": "TASKRELAY_AGENT_NAME",
}

SECRET_SETTINGS = {"bot_token", "webhook_secret"}


def get_relay_home() -> Path:
    """Get the taskrelay data directory."""
    if env_home := os.environ.get("TASKRELAY_HOME"):
        return Path(env_home).expanduser()
    return Path.home() / ".taskrelay"


def get_config_path() -> Path:
    """Get the path to taskrelay's config file."""
    return get_relay_home() / "config.json"


def get_db_path() -> Path:
    """Get the path to the session database."""
    return get_relay_home() / "sessions.db"


def read_config() -> dict:
    """Read taskrelay config, returning empty dict if not found."""
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_bytes()
        return orjson.loads(content) if content else {}
    except (orjson.JSONDecodeError, OSError):
        return {}


def write_config(config: dict) -> None:
    """Write taskrelay config."""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_bytes(orjson.dumps(config, option=orjson.OPT_INDENT_2))


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(value) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [v.strip() for v in str(value).split(",") if v.strip()]


@dataclass
class Settings:
    """Resolved runtime settings.

    token_ttl_seconds is the single source for how long a token lives. The
    notification stamp and the help text both read it.
    """

    bot_token: str = ""
    chat_id: str = ""
    group_id: str = ""
    whitelist: list[str] = field(default_factory=list)
    bot_username: str = DEFAULT_BOT_USERNAME
    webhook_secret: str = ""
    webhook_url: str = ""
    port: int = DEFAULT_PORT
    force_ipv4: bool = False
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    legacy_sessions_dir: str = ""
    quick_commands: list[str] = field(default_factory=list)
    agent_name: str = "Claude"

    def __post_init__(self) -> None:
        """Coerce values read from JSON or the environment."""
        self.chat_id = str(self.chat_id or "")
        self.group_id = str(self.group_id or "")
        self.whitelist = _parse_list(self.whitelist)
        self.quick_commands = _parse_list(self.quick_commands)
        self.port = int(self.port)
        self.force_ipv4 = _parse_bool(self.force_ipv4)
        self.token_ttl_seconds = int(self.token_ttl_seconds)
        if self.token_ttl_seconds <= 0:
            raise ValueError("token_ttl_seconds must be > 0")

    @property
    def notify_chat_id(self) -> str:
        """Chat that receives notifications: the group if set, else the chat."""
        return self.group_id or self.chat_id

    @property
    def legacy_dir(self) -> Path | None:
        if not self.legacy_sessions_dir:
            return None
        return Path(self.legacy_sessions_dir).expanduser()

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty if usable)."""
        problems = []
        if not self.bot_token:
            problems.append("Telegram bot token is not set (TELEGRAM_BOT_TOKEN)")
        if not self.notify_chat_id:
            problems.append(
                "Telegram chat id or group id is not set (TELEGRAM_CHAT_ID / TELEGRAM_GROUP_ID)"
            )
        return problems

    def redacted(self) -> dict:
        """Settings as a dict with secrets masked."""
        data = asdict(self)
        for name in SECRET_SETTINGS:
            if data[name]:
                data[name] = data[name][:4] + "..."
        return data


SETTING_NAMES = {f.name for f in fields(Settings)}


def load_settings() -> Settings:
    """Load settings from the config file, then apply env overrides.

    Raises:
        ValueError: If a value cannot be coerced to its setting's type.
    """
    values = {k: v for k, v in read_config().items() if k in SETTING_NAMES}
    for name, env_var in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_var)
        if env_value:
            values[name] = env_value
    return Settings(**values)


def set_setting(name: str, value: str) -> None:
    """Persist one setting to the config file.

    Raises:
        KeyError: If name is not a known setting.
        ValueError: If the value is not valid for the setting.
    """
    if name not in SETTING_NAMES:
        raise KeyError(name)
    config = read_config()
    config[name] = value
    # Validate the merged result before writing it
    Settings(**{k: v for k, v in config.items() if k in SETTING_NAMES})
    write_config(config)
