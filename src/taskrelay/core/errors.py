"""Error taxonomy for taskrelay.

Every error here is terminal for the single event being processed.
None of them trigger retries.
"""


class RelayError(Exception):
    """Base class for all taskrelay errors."""

    pass


class UnauthorizedError(RelayError):
    """Raised when a caller is not on the allow-list."""

    pass


class ParseError(RelayError):
    """Raised when chat text does not match any command form.

    The message is the usage hint shown to the operator.
    """

    pass


class TokenNotFoundError(RelayError):
    """Raised when no session holds the given token."""

    def __init__(self, token: str):
        super().__init__(f"No session for token {token}")
        self.token = token


class TokenExpiredError(RelayError):
    """Raised when a token's session has passed its expiry."""

    def __init__(self, token: str):
        super().__init__(f"Token {token} has expired")
        self.token = token


class DuplicateTokenError(RelayError):
    """Raised when a live session already holds the token being stored."""

    def __init__(self, token: str):
        super().__init__(f"Token {token} is already in use")
        self.token = token


class DispatchError(RelayError):
    """Raised when a command could not be injected into its target."""

    pass


class SendError(RelayError):
    """Raised when an outbound Telegram call fails."""

    pass
