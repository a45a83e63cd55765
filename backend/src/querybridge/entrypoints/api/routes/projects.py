"""Project CRUD, activity feed and version routes."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from querybridge.adapters.audit import audited
from querybridge.core.projects import ActivityAction, EntityType, ProjectService
from querybridge.core.projects.types import ProjectActivity
from querybridge.core.rbac import MembershipService, Permission
from querybridge.entrypoints.api.deps import get_project_service
from querybridge.entrypoints.api.middleware.jwt_auth import JwtContext, verify_jwt
from querybridge.entrypoints.api.middleware.project_access import (
    EditorAccess,
    ProjectAccess,
    ViewerAccess,
    require_project_permission,
)

router = APIRouter(prefix="/projects", tags=["projects"])

AuthDep = Annotated[JwtContext, Depends(verify_jwt)]
ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]


class ProjectCreate(BaseModel):
    """Request to create a project."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_public: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    template_id: UUID | None = None
    variables: dict[str, Any] = Field(default_factory=dict)


class ProjectUpdate(BaseModel):
    """Request to update a project. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_public: bool | None = None
    settings: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class ProjectResponse(BaseModel):
    """Response for a project."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str | None = None
    is_public: bool
    is_active: bool
    settings: dict[str, Any]
    metadata: dict[str, Any]
    template_id: UUID | None = None
    created_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectVersionCreate(BaseModel):
    """Request to snapshot a project."""

    name: str | None = Field(None, max_length=255)
    description: str | None = None


class ProjectVersionResponse(BaseModel):
    """Response for a project version."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    version: str
    name: str | None = None
    description: str | None = None
    is_current: bool
    snapshot: dict[str, Any]
    created_by: UUID | None = None
    created_at: datetime | None = None


class ActivityListResponse(BaseModel):
    """A page of the activity feed."""

    activities: list[ProjectActivity]
    limit: int
    offset: int


@router.get("/roles")
async def list_roles(auth: AuthDep) -> list[dict[str, Any]]:
    """Describe the available project roles and their default permissions."""
    return MembershipService.available_roles()


@router.get("")
async def list_projects(
    auth: AuthDep,
    service: ProjectServiceDep,
    include_public: bool = False,
) -> list[dict[str, Any]]:
    """List the caller's projects with their role in each."""
    return await service.list_projects_for_user(auth.user_uuid, include_public=include_public)


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    body: ProjectCreate,
    auth: AuthDep,
    service: ProjectServiceDep,
) -> ProjectResponse:
    """Create a project. The caller becomes its first admin.

    With ``template_id`` the project is seeded from that project's settings.
    """
    if body.template_id is not None:
        project = await service.create_from_template(
            body.template_id,
            created_by=auth.user_uuid,
            name=body.name,
            description=body.description,
            settings=body.settings,
            variables=body.variables,
        )
        return ProjectResponse.model_validate(project)

    project = await service.create_project(
        name=body.name,
        created_by=auth.user_uuid,
        description=body.description,
        is_public=body.is_public,
        settings=body.settings,
        metadata=body.metadata,
    )
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    access: ViewerAccess,
    service: ProjectServiceDep,
) -> ProjectResponse:
    """Get a project."""
    return ProjectResponse.model_validate(await service.get_project(project_id))


@router.patch("/{project_id}", response_model=ProjectResponse)
@audited(ActivityAction.UPDATE, EntityType.PROJECT)
async def update_project(
    request: Request,
    project_id: UUID,
    body: ProjectUpdate,
    access: Annotated[
        ProjectAccess, Depends(require_project_permission(Permission.PROJECT_UPDATE))
    ],
    service: ProjectServiceDep,
) -> ProjectResponse:
    """Update a project's editable fields."""
    project = await service.update_project(project_id, body.model_dump(exclude_unset=True))
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=204, response_class=Response)
@audited(ActivityAction.DELETE, EntityType.PROJECT)
async def delete_project(
    request: Request,
    project_id: UUID,
    access: Annotated[
        ProjectAccess, Depends(require_project_permission(Permission.PROJECT_DELETE))
    ],
    service: ProjectServiceDep,
) -> Response:
    """Soft-delete a project."""
    await service.delete_project(project_id)
    return Response(status_code=204)


@router.get("/{project_id}/activity", response_model=ActivityListResponse)
async def list_activity(
    project_id: UUID,
    access: Annotated[
        ProjectAccess, Depends(require_project_permission(Permission.ACTIVITY_READ))
    ],
    service: ProjectServiceDep,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    action: ActivityAction | None = None,
    entity_type: EntityType | None = None,
) -> ActivityListResponse:
    """Page through the project's activity, newest first."""
    activities = await service.activity_feed(
        project_id, limit=limit, offset=offset, action=action, entity_type=entity_type
    )
    return ActivityListResponse(activities=activities, limit=limit, offset=offset)


@router.get("/{project_id}/versions", response_model=list[ProjectVersionResponse])
async def list_versions(
    project_id: UUID,
    access: ViewerAccess,
    service: ProjectServiceDep,
) -> list[ProjectVersionResponse]:
    """List project versions, newest first."""
    versions = await service.list_versions(project_id)
    return [ProjectVersionResponse.model_validate(v) for v in versions]


@router.post("/{project_id}/versions", response_model=ProjectVersionResponse, status_code=201)
async def create_version(
    project_id: UUID,
    body: ProjectVersionCreate,
    access: EditorAccess,
    service: ProjectServiceDep,
) -> ProjectVersionResponse:
    """Snapshot the project as its new current version."""
    version = await service.create_version(
        project_id,
        created_by=access.user_id,
        name=body.name,
        description=body.description,
    )
    return ProjectVersionResponse.model_validate(version)
