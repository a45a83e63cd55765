"""JWT access token creation and validation."""

import os
from datetime import UTC, datetime, timedelta

import jwt

from querybridge.core.auth.types import TokenPayload
from querybridge.core.exceptions import TokenExpiredError, TokenInvalidError

# Configuration
SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15


def create_access_token(
    user_id: str,
    email: str,
    secret_key: str | None = None,
    expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
) -> str:
    """Create a short-lived access token.

    Args:
        user_id: User identifier
        email: User's email address
        secret_key: Signing key, defaults to ``JWT_SECRET_KEY``
        expires_minutes: Lifetime of the token

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=expires_minutes)

    payload = {
        "sub": user_id,
        "email": email,
        "type": "access",
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
    }

    return jwt.encode(payload, secret_key or SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str | None = None) -> TokenPayload:
    """Decode and validate an access token.

    Args:
        token: Encoded JWT string
        secret_key: Verification key, defaults to ``JWT_SECRET_KEY``

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If the token is past its expiry
        TokenInvalidError: If the token is malformed or not an access token
    """
    try:
        payload = jwt.decode(token, secret_key or SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError() from None
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}") from None

    if payload.get("type") != "access":
        raise TokenInvalidError("Not an access token")
    return TokenPayload(
        sub=payload["sub"],
        email=payload.get("email", ""),
        exp=payload["exp"],
        iat=payload["iat"],
    )
