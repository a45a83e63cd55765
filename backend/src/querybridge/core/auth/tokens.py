"""Opaque single-use and refresh tokens.

Only the SHA-256 hash of a token is ever stored; the plaintext leaves the
process once, in a response body or an email link.
"""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta

TOKEN_BYTES = 32
RESET_TOKEN_EXPIRY = timedelta(hours=1)
VERIFICATION_TOKEN_EXPIRY = timedelta(hours=24)
REFRESH_TOKEN_EXPIRY = timedelta(days=7)


def generate_token() -> str:
    """Generate a URL-safe token with 256 bits of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hex-encoded SHA-256 of a token, used as its lookup key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_token_expiry(lifetime: timedelta) -> datetime:
    """UTC instant a token issued now expires at."""
    return datetime.now(UTC) + lifetime


def is_token_expired(expires_at: datetime | None) -> bool:
    """Check if a token has expired. A missing expiry counts as expired."""
    if expires_at is None:
        return True
    # Handle timezone-naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return datetime.now(UTC) > expires_at
