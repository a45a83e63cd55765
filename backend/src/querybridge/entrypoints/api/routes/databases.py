"""Project database registry routes."""

from dataclasses import asdict
from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from querybridge.adapters.audit import audited
from querybridge.core.projects import (
    ActivityAction,
    ConnectionConfig,
    DatabaseRegistryService,
    EntityType,
    ProjectDatabase,
)
from querybridge.core.query import QueryGateway
from querybridge.core.rbac import Permission
from querybridge.entrypoints.api.deps import get_database_service, get_query_gateway
from querybridge.entrypoints.api.middleware.project_access import (
    ProjectAccess,
    require_project_permission,
)

router = APIRouter(prefix="/projects/{project_id}/databases", tags=["databases"])

DatabaseServiceDep = Annotated[DatabaseRegistryService, Depends(get_database_service)]
GatewayDep = Annotated[QueryGateway, Depends(get_query_gateway)]
ReadAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.DATABASE_READ))
]
CreateAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.DATABASE_CREATE))
]
UpdateAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.DATABASE_UPDATE))
]
DeleteAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.DATABASE_DELETE))
]
TestAccess = Annotated[
    ProjectAccess, Depends(require_project_permission(Permission.DATABASE_TEST))
]


class DatabaseCreate(BaseModel):
    """Request to register a database."""

    name: str = Field(..., min_length=1, max_length=100)
    type: str
    connection_config: ConnectionConfig
    is_primary: bool = False
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DatabaseUpdate(BaseModel):
    """Request to update a database. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=100)
    connection_config: ConnectionConfig | None = None
    is_primary: bool | None = None
    description: str | None = None
    metadata: dict[str, Any] | None = None


class DatabaseResponse(BaseModel):
    """Response for a database. The password is never returned."""

    id: UUID
    name: str
    type: str
    is_primary: bool
    is_active: bool
    description: str | None = None
    connection_config: dict[str, Any]
    metadata: dict[str, Any]
    created_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TestConnectionResponse(BaseModel):
    """Response for testing a connection."""

    success: bool
    message: str
    latency_ms: int | None = None
    server_version: str | None = None
    error_code: str | None = None


def _to_response(database: ProjectDatabase) -> DatabaseResponse:
    return DatabaseResponse(
        id=database.id,
        name=database.name,
        type=database.type,
        is_primary=database.is_primary,
        is_active=database.is_active,
        description=database.description,
        connection_config=database.connection_config.redacted(),
        metadata=database.metadata,
        created_by=database.created_by,
        created_at=database.created_at,
        updated_at=database.updated_at,
    )


@router.get("", response_model=list[DatabaseResponse])
async def list_databases(
    project_id: UUID,
    access: ReadAccess,
    service: DatabaseServiceDep,
) -> list[DatabaseResponse]:
    """List the project's databases, primary first."""
    return [_to_response(db) for db in await service.list_databases(project_id)]


@router.post("", response_model=DatabaseResponse, status_code=201)
@audited(ActivityAction.CREATE, EntityType.DATABASE)
async def register_database(
    request: Request,
    project_id: UUID,
    body: DatabaseCreate,
    access: CreateAccess,
    service: DatabaseServiceDep,
) -> DatabaseResponse:
    """Register a database. The config is validated before it is stored."""
    database = await service.register_database(
        project_id=project_id,
        name=body.name,
        database_type=body.type,
        config=body.connection_config,
        created_by=access.user_id,
        is_primary=body.is_primary,
        description=body.description,
        metadata=body.metadata,
    )
    return _to_response(database)


@router.get("/{database_id}", response_model=DatabaseResponse)
async def get_database(
    project_id: UUID,
    database_id: UUID,
    access: ReadAccess,
    service: DatabaseServiceDep,
) -> DatabaseResponse:
    """Get a database."""
    return _to_response(await service.get_database(project_id, database_id))


@router.patch("/{database_id}", response_model=DatabaseResponse)
@audited(ActivityAction.UPDATE, EntityType.DATABASE)
async def update_database(
    request: Request,
    project_id: UUID,
    database_id: UUID,
    body: DatabaseUpdate,
    access: UpdateAccess,
    service: DatabaseServiceDep,
) -> DatabaseResponse:
    """Update a database. A new config replaces any cached connection."""
    database = await service.update_database(
        project_id,
        database_id,
        name=body.name,
        description=body.description,
        config=body.connection_config,
        metadata=body.metadata,
        is_primary=body.is_primary,
    )
    return _to_response(database)


@router.delete("/{database_id}", status_code=204, response_class=Response)
@audited(ActivityAction.DELETE, EntityType.DATABASE)
async def remove_database(
    request: Request,
    project_id: UUID,
    database_id: UUID,
    access: DeleteAccess,
    service: DatabaseServiceDep,
) -> Response:
    """Remove a database from the project."""
    await service.remove_database(project_id, database_id)
    return Response(status_code=204)


@router.post("/{database_id}/primary", response_model=DatabaseResponse)
@audited(ActivityAction.UPDATE, EntityType.DATABASE)
async def set_primary_database(
    request: Request,
    project_id: UUID,
    database_id: UUID,
    access: UpdateAccess,
    service: DatabaseServiceDep,
) -> DatabaseResponse:
    """Make a database the project's primary."""
    return _to_response(await service.set_primary(project_id, database_id))


@router.post("/{database_id}/test", response_model=TestConnectionResponse)
async def test_database_connection(
    project_id: UUID,
    database_id: UUID,
    access: TestAccess,
    service: DatabaseServiceDep,
) -> TestConnectionResponse:
    """Open, ping and close a connection without caching it."""
    result = await service.test_connection(project_id, database_id)
    return TestConnectionResponse(**asdict(result))


@router.get("/{database_id}/schema")
async def get_database_schema(
    project_id: UUID,
    database_id: UUID,
    access: ReadAccess,
    gateway: GatewayDep,
) -> dict[str, list[dict[str, Any]]]:
    """Tables of a database with their columns, keyed by qualified name."""
    snapshot = await gateway.describe(project_id, database_id)
    return snapshot.to_dict()
