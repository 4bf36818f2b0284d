"""Session token generation.

Tokens are short enough to type on a phone keyboard. They address a
session, they are not credentials.
"""

import re
import secrets
import string

TOKEN_ALPHABET = string.ascii_uppercase + string.digits
TOKEN_LENGTH = 8

_TOKEN_RE = re.compile(rf"^[A-Z0-9]{{{TOKEN_LENGTH}}}$")


def generate_token() -> str:
    """Generate a new token, e.g. "K3Q9ZT0A"."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def normalize_token(token: str) -> str:
    """Normalize a token for comparison and storage."""
    return token.strip().upper()


def is_valid_token(token: str) -> bool:
    """Check whether text has the shape of a token (any case)."""
    return bool(_TOKEN_RE.match(normalize_token(token)))
