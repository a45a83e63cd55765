"""Project activity decorator for route handlers."""

from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar
from uuid import UUID

import structlog
from fastapi import Request

from querybridge.core.projects.types import ActivityAction, EntityType, ProjectActivityCreate

logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")

ENTITY_ID_KEYS = ("database_id", "user_id", "key_id", "version_id", "project_id")


def get_client_ip(request: Request) -> str | None:
    """Extract client IP from request.

    Args:
        request: FastAPI request object.

    Returns:
        Client IP address or None.
    """
    # Check X-Forwarded-For header first (for proxied requests)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def _as_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        return None


def _extract_entity_info(result: Any, kwargs: dict[str, Any]) -> tuple[UUID | None, str | None]:
    """Extract entity ID and name from the handler result or its path params."""
    entity_id: UUID | None = None
    entity_name: str | None = None

    if isinstance(result, dict):
        entity_id = _as_uuid(result.get("id"))
        entity_name = result.get("name") or result.get("version")
    elif hasattr(result, "id"):
        entity_id = _as_uuid(result.id)
        entity_name = getattr(result, "name", None) or getattr(result, "version", None)

    if entity_id is None:
        for key in ENTITY_ID_KEYS:
            entity_id = _as_uuid(kwargs.get(key))
            if entity_id is not None:
                break

    return entity_id, entity_name


def audited(
    action: ActivityAction,
    entity_type: EntityType,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorate route handlers to append a project activity entry.

    The entry is written only after the handler returns; a failure to write
    it is logged and never fails the request.

    Args:
        action: What happened.
        entity_type: Kind of entity acted on.

    Returns:
        Decorated function that records project activity.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            request: Request | None = kwargs.get("request")  # type: ignore[assignment]
            if request is None:
                for arg in args:
                    if isinstance(arg, Request):
                        request = arg
                        break

            result = await func(*args, **kwargs)  # type: ignore[misc]

            if request is not None:
                try:
                    await _record_activity(
                        request=request,
                        action=action,
                        entity_type=entity_type,
                        result=result,
                        kwargs=dict(kwargs),
                    )
                except Exception as e:
                    logger.error("activity_record_failed", action=action.value, error=str(e))

            typed_result: R = result
            return typed_result

        return wrapper  # type: ignore[return-value]

    return decorator


async def _record_activity(
    request: Request,
    action: ActivityAction,
    entity_type: EntityType,
    result: Any,
    kwargs: dict[str, Any],
) -> None:
    project_service = getattr(request.app.state, "project_service", None)
    if project_service is None:
        logger.warning("activity_log_not_configured")
        return

    project_id = _as_uuid(kwargs.get("project_id"))
    if project_id is None and entity_type is EntityType.PROJECT:
        project_id = _as_uuid(getattr(result, "id", None))
    if project_id is None:
        logger.warning("activity_without_project", action=action.value)
        return

    entity_id, entity_name = _extract_entity_info(result, kwargs)
    entry = ProjectActivityCreate(
        project_id=project_id,
        user_id=getattr(request.state, "user_id", None),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        metadata={"method": request.method, "path": request.url.path},
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    await project_service.log_activity(entry)
