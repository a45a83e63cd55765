"""API Key authentication middleware."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from querybridge.core.auth.tokens import hash_token

logger = structlog.get_logger()

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass
class ApiKeyContext:
    """Context from a verified API key.

    A key belongs to exactly one project and acts for the member who
    created it. A non-empty ``permissions`` list narrows what it may do.
    """

    key_id: UUID
    project_id: UUID
    user_id: UUID
    permissions: list[str] = field(default_factory=list)


async def verify_api_key(
    request: Request,
    api_key: str | None = Security(API_KEY_HEADER),
) -> ApiKeyContext:
    """Verify API key and return context.

    Raises:
        HTTPException: 401 if the key is missing, unknown or expired.
    """
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    repo = request.app.state.api_keys
    record = await repo.get_by_hash(hash_token(api_key))

    if not record:
        logger.warning("invalid_api_key", key_prefix=api_key[:8])
        raise HTTPException(status_code=401, detail="Invalid API key")

    expires_at = record.get("expires_at")
    if isinstance(expires_at, datetime) and expires_at < datetime.now(UTC):
        raise HTTPException(status_code=401, detail="API key expired")

    try:
        await repo.touch_last_used(record["id"])
    except Exception as e:
        logger.warning("api_key_touch_failed", key_id=str(record["id"]), error=str(e))

    context = ApiKeyContext(
        key_id=record["id"],
        project_id=record["project_id"],
        user_id=record["user_id"],
        permissions=list(record.get("permissions") or []),
    )

    # Store context in request state for activity logging
    request.state.auth_context = context
    request.state.user_id = context.user_id

    logger.debug(
        "api_key_verified",
        key_id=str(context.key_id),
        project_id=str(context.project_id),
    )
    return context
