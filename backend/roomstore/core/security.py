import hmac
import secrets
from functools import lru_cache
from typing import Optional

import bcrypt

from .config import MIN_TOKEN_BYTES

# Compared against when the record is missing, so a miss costs the same as a mismatch.
_DUMMY_TOKEN = secrets.token_urlsafe(32)

# bcrypt only looks at the first 72 bytes of its input.
BCRYPT_MAX_BYTES = 72


def generate_token(nbytes: int = 32) -> str:
    """Return a URL-safe token carrying ``nbytes`` bytes of CSPRNG output."""
    if nbytes < MIN_TOKEN_BYTES:
        raise ValueError(f"Refusing to issue a token shorter than {MIN_TOKEN_BYTES} bytes")
    return secrets.token_urlsafe(nbytes)


def tokens_match(stored: Optional[str], candidate) -> bool:
    """Constant-time token comparison. A missing ``stored`` never matches."""
    if not isinstance(candidate, str):
        candidate = ""
    expected = stored if stored is not None else _DUMMY_TOKEN
    same = hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))
    return same and stored is not None


def hash_token(token: str, rounds: int = 12) -> str:
    """
    Hash a user token with bcrypt.

    Args:
        token: Plain token as issued to the user
        rounds: bcrypt cost factor

    Returns:
        Bcrypt hash string, safe to persist
    """
    raw = token.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Token longer than {BCRYPT_MAX_BYTES} bytes cannot be hashed")
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def is_token_hash(value: str) -> bool:
    """True for strings shaped like a bcrypt hash ($2a$, $2b$ or $2y$)."""
    return (
        isinstance(value, str)
        and len(value) == 60
        and value[:4] in ("$2a$", "$2b$", "$2y$")
    )


@lru_cache
def _dummy_hash(rounds: int) -> bytes:
    return hash_token(_DUMMY_TOKEN, rounds).encode("utf-8")


def verify_token(stored_hash: Optional[str], candidate, rounds: int = 12) -> bool:
    """
    Check ``candidate`` against a bcrypt hash.

    A missing hash is checked against a dummy one of the same cost, so the
    caller cannot tell "no such user" from "wrong token" by timing.
    """
    raw = candidate.encode("utf-8") if isinstance(candidate, str) else b""
    if stored_hash is None or len(raw) > BCRYPT_MAX_BYTES or not raw:
        bcrypt.checkpw(_DUMMY_TOKEN.encode("utf-8"), _dummy_hash(rounds))
        return False
    return bcrypt.checkpw(raw, stored_hash.encode("utf-8"))
