"""Project API key routes."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from querybridge.adapters.audit import audited
from querybridge.adapters.auth import PostgresApiKeyRepository
from querybridge.core.projects import ActivityAction, EntityType
from querybridge.core.rbac import Permission
from querybridge.entrypoints.api.deps import get_api_key_repository
from querybridge.entrypoints.api.middleware.project_access import (
    ProjectAccess,
    require_project_permission,
)

router = APIRouter(prefix="/projects/{project_id}/api-keys", tags=["api-keys"])

ApiKeyRepoDep = Annotated[PostgresApiKeyRepository, Depends(get_api_key_repository)]
ReadAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.API_KEY_READ))
]
CreateAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.API_KEY_CREATE))
]
DeleteAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.API_KEY_DELETE))
]


class ApiKeyCreate(BaseModel):
    """Request to create an API key.

    An empty permission list lets the key act with its creator's role.
    """

    name: str = Field(..., min_length=1, max_length=100)
    permissions: list[Permission] = Field(default_factory=list)
    expires_at: datetime | None = None


class ApiKeyResponse(BaseModel):
    """Response for an API key. Only the prefix of the key is shown."""

    id: UUID
    name: str
    key_prefix: str
    permissions: list[str]
    is_active: bool
    last_used_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime


class ApiKeyCreateResponse(ApiKeyResponse):
    """Response for a new key, carrying the plaintext exactly once."""

    key: str


@router.get("", response_model=list[ApiKeyResponse])
async def list_api_keys(
    project_id: UUID,
    access: ReadAccess,
    repo: ApiKeyRepoDep,
) -> list[ApiKeyResponse]:
    """List the project's API keys."""
    return [ApiKeyResponse(**row) for row in await repo.list_for_project(project_id)]


@router.post("", response_model=ApiKeyCreateResponse, status_code=201)
@audited(ActivityAction.CREATE, EntityType.API_KEY)
async def create_api_key(
    request: Request,
    project_id: UUID,
    body: ApiKeyCreate,
    access: CreateAccess,
    repo: ApiKeyRepoDep,
) -> ApiKeyCreateResponse:
    """Create an API key. The plaintext key is returned once."""
    held = access.grant
    exceeding = sorted(p.value for p in body.permissions if not held.allows(p))
    if exceeding:
        raise HTTPException(
            status_code=403,
            detail=f"Cannot grant permissions you do not hold: {', '.join(exceeding)}",
        )

    key, row = await repo.create(
        project_id=project_id,
        user_id=access.user_id,
        name=body.name,
        permissions=[p.value for p in body.permissions],
        expires_at=body.expires_at,
    )
    return ApiKeyCreateResponse(key=key, **row)


@router.delete("/{key_id}", status_code=204, response_class=Response)
@audited(ActivityAction.DELETE, EntityType.API_KEY)
async def revoke_api_key(
    request: Request,
    project_id: UUID,
    key_id: UUID,
    access: DeleteAccess,
    repo: ApiKeyRepoDep,
) -> Response:
    """Revoke an API key."""
    if not await repo.revoke(project_id, key_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return Response(status_code=204)
