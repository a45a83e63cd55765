"""JWT authentication middleware."""

from dataclasses import dataclass
from uuid import UUID

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from querybridge.core.auth.jwt import decode_token

logger = structlog.get_logger()

# Use Bearer token authentication
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class JwtContext:
    """Context from a verified JWT token."""

    user_id: str
    email: str

    @property
    def user_uuid(self) -> UUID:
        """Get user ID as UUID."""
        return UUID(self.user_id)


def _signing_key(request: Request) -> str | None:
    settings = getattr(request.app.state, "settings", None)
    return getattr(settings, "jwt_secret_key", None)


async def verify_jwt(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> JwtContext:
    """Verify JWT token and return context.

    Args:
        request: The current request.
        credentials: Bearer token credentials.

    Returns:
        JwtContext with user info.

    Raises:
        HTTPException: 401 if the token is missing.
        TokenExpiredError: The token is past its expiry.
        TokenInvalidError: The token is malformed or not an access token.
    """
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, secret_key=_signing_key(request))
    context = JwtContext(user_id=payload.sub, email=payload.email)

    # Store in request state for downstream use
    request.state.user = context
    request.state.user_id = context.user_uuid

    logger.debug("jwt_verified", user_id=context.user_id)
    return context

