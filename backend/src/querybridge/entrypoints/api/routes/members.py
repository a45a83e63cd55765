"""Project membership routes."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from querybridge.adapters.audit import audited
from querybridge.core.projects import ActivityAction, EntityType
from querybridge.core.rbac import MembershipService, Permission, ProjectMember, Role
from querybridge.entrypoints.api.deps import get_membership_service
from querybridge.entrypoints.api.middleware.project_access import (
    ProjectAccess,
    require_project_permission,
)

router = APIRouter(prefix="/projects/{project_id}/members", tags=["members"])

MembershipServiceDep = Annotated[MembershipService, Depends(get_membership_service)]


ListAccess = Annotated[ProjectAccess, Depends(require_project_permission(Permission.MEMBER_LIST))]
AddAccess = Annotated[ProjectAccess, Depends(require_project_permission(Permission.MEMBER_ADD))]
UpdateAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.MEMBER_UPDATE))
]
RemoveAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.MEMBER_REMOVE))
]


class MemberAdd(BaseModel):
    """Request to add a member."""

    user_id: UUID
    role: Role = Role.USER
    permissions: list[Permission] = Field(default_factory=list)


class MemberRoleUpdate(BaseModel):
    """Request to change a member's role.

    ``permissions`` only applies to the custom role.
    """

    role: Role
    permissions: list[Permission] = Field(default_factory=list)


class MemberResponse(BaseModel):
    """Response for a membership."""

    id: UUID
    user_id: UUID
    email: str | None = None
    name: str | None = None
    role: Role
    permissions: list[str]
    status: str
    invited_by: UUID | None = None
    invited_at: datetime | None = None
    joined_at: datetime | None = None
    last_accessed_at: datetime | None = None
    created_at: datetime


def _to_response(member: ProjectMember) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        user_id=member.user_id,
        email=member.user_email,
        name=member.user_name,
        role=member.role,
        permissions=sorted(p.value for p in member.grant.permissions),
        status=member.status.value,
        invited_by=member.invited_by,
        invited_at=member.invited_at,
        joined_at=member.joined_at,
        last_accessed_at=member.last_accessed_at,
        created_at=member.created_at,
    )


@router.get("", response_model=list[MemberResponse])
async def list_members(
    project_id: UUID,
    access: ListAccess,
    service: MembershipServiceDep,
    include_inactive: bool = False,
    role: Role | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[MemberResponse]:
    """List the project's members."""
    members = await service.list_members(
        project_id, include_inactive=include_inactive, role=role, limit=limit, offset=offset
    )
    return [_to_response(m) for m in members]


@router.post("", response_model=MemberResponse, status_code=201)
@audited(ActivityAction.INVITE, EntityType.MEMBER)
async def add_member(
    request: Request,
    project_id: UUID,
    body: MemberAdd,
    access: AddAccess,
    service: MembershipServiceDep,
) -> MemberResponse:
    """Add a user to the project, reactivating a previous membership."""
    member = await service.add_member(
        project_id,
        body.user_id,
        body.role,
        acted_by=access.user_id,
        permissions=[p.value for p in body.permissions],
    )
    return _to_response(member)


@router.patch("/{user_id}", response_model=MemberResponse)
@audited(ActivityAction.UPDATE, EntityType.MEMBER)
async def update_member_role(
    request: Request,
    project_id: UUID,
    user_id: UUID,
    body: MemberRoleUpdate,
    access: UpdateAccess,
    service: MembershipServiceDep,
) -> MemberResponse:
    """Change a member's role."""
    member = await service.update_role(
        project_id, user_id, body.role, [p.value for p in body.permissions]
    )
    return _to_response(member)


@router.delete("/{user_id}", response_model=MemberResponse)
@audited(ActivityAction.DELETE, EntityType.MEMBER)
async def remove_member(
    request: Request,
    project_id: UUID,
    user_id: UUID,
    access: RemoveAccess,
    service: MembershipServiceDep,
) -> MemberResponse:
    """Remove a member from the project."""
    if user_id == access.user_id:
        raise HTTPException(status_code=400, detail="You cannot remove yourself from the project")
    return _to_response(await service.remove_member(project_id, user_id))
