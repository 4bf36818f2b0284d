"""Session and task event dataclasses for taskrelay."""

from dataclasses import asdict, dataclass

from taskrelay.core.tokens import is_valid_token, normalize_token

VALID_KINDS = {"completed", "waiting"}

# Target used when a notification was emitted outside any tmux session
DEFAULT_TARGET = "default"


@dataclass
class Session:
    """Binds a token to a tmux target until it expires.

    Attributes:
        id: Opaque unique identifier (uuid4 hex)
        token: 8-character token, always stored uppercase
        created_at: Creation time in epoch seconds
        expires_at: Expiry time in epoch seconds
        target: tmux target that receives injected commands
        project: Display label for the project
        chat_id: Chat the notification was sent to
        kind: Task event that created the session - "completed" or "waiting"
    """

    id: str
    token: str
    created_at: int
    expires_at: int
    target: str = DEFAULT_TARGET
    project: str = ""
    chat_id: str = ""
    kind: str = "completed"

    def __post_init__(self) -> None:
        """Normalize the token and validate fields."""
        self.token = normalize_token(self.token)
        if not is_valid_token(self.token):
            raise ValueError(f"Invalid token: {self.token!r}")
        if self.kind not in VALID_KINDS:
            raise ValueError(f"Invalid kind: {self.kind}. Must be one of {VALID_KINDS}")
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must not be before created_at")
        self.target = self.target or DEFAULT_TARGET
        self.chat_id = str(self.chat_id)

    def is_expired(self, now: int) -> bool:
        """A session is usable strictly before expires_at."""
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_legacy(cls, record: dict) -> "Session":
        """Build a session from a legacy one-file-per-session JSON record.

        Accepts both the notification-channel layout (id, tmuxSession) and
        the persistent-session layout (sessionId, chatId).

        Raises:
            ValueError: If the record lacks an id, token or expiry.
        """
        session_id = record.get("id") or record.get("sessionId")
        token = record.get("token")
        expires_at = record.get("expiresAt")
        if not session_id or not token or expires_at is None:
            raise ValueError("Legacy record is missing id, token or expiresAt")

        created_at = record.get("createdAt", expires_at)
        kind = (record.get("notification") or {}).get("type", "completed")
        return cls(
            id=str(session_id),
            token=token,
            created_at=int(min(created_at, expires_at)),
            expires_at=int(expires_at),
            target=record.get("tmuxSession") or DEFAULT_TARGET,
            project=record.get("project") or "",
            chat_id=str(record.get("chatId") or ""),
            kind=kind if kind in VALID_KINDS else "completed",
        )


@dataclass
class TaskEvent:
    """A task event reported by the agent.

    Attributes:
        kind: "completed" or "waiting"
        project: Project label shown in the notification
        question: Last prompt the operator gave the agent (optional)
        response: Last message the agent produced (optional)
        target: tmux target the event came from (None if unknown)
    """

    kind: str
    project: str
    question: str = ""
    response: str = ""
    target: str | None = None

    def __post_init__(self) -> None:
        """Validate event kind."""
        if self.kind not in VALID_KINDS:
            raise ValueError(f"Invalid kind: {self.kind}. Must be one of {VALID_KINDS}")

    @property
    def has_terminal_context(self) -> bool:
        return bool(self.target) and self.target != DEFAULT_TARGET
