"""Query execution, natural-language ask and history routes."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from querybridge.adapters.audit import audited
from querybridge.core.projects import ActivityAction, EntityType
from querybridge.core.query import QueryGateway, QueryHistoryEntry, Translation
from querybridge.entrypoints.api.deps import get_query_gateway
from querybridge.entrypoints.api.middleware.project_access import UserAccess

router = APIRouter(prefix="/projects/{project_id}/query", tags=["query"])

GatewayDep = Annotated[QueryGateway, Depends(get_query_gateway)]


class ExecuteRequest(BaseModel):
    """Request to run a statement.

    Without ``database_id`` the project's primary database is used.
    """

    query: str = Field(..., min_length=1)
    database_id: UUID | None = None
    params: list[Any] = Field(default_factory=list)


class AskRequest(BaseModel):
    """Natural-language question, optionally with extra context for translation."""

    question: str = Field(..., min_length=1)
    database_id: UUID | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class HistoryResponse(BaseModel):
    """A page of query history."""

    data: list[QueryHistoryEntry]
    meta: dict[str, int]


@router.post("/execute")
@audited(ActivityAction.EXECUTE, EntityType.QUERY)
async def execute_query(
    request: Request,
    project_id: UUID,
    body: ExecuteRequest,
    access: UserAccess,
    gateway: GatewayDep,
) -> dict[str, Any]:
    """Run a statement with bound parameters against a project database."""
    return await gateway.execute(
        project_id,
        body.database_id,
        body.query,
        body.params,
        user_id=access.user_id,
    )


@router.post("/ask")
@audited(ActivityAction.EXECUTE, EntityType.QUERY)
async def ask_question(
    request: Request,
    project_id: UUID,
    body: AskRequest,
    access: UserAccess,
    gateway: GatewayDep,
) -> dict[str, Any]:
    """Translate a question into a query and run it."""
    return await gateway.ask(
        project_id,
        body.database_id,
        body.question,
        user_id=access.user_id,
        context=body.context,
    )


@router.post("/translate", response_model=Translation)
async def translate_question(
    project_id: UUID,
    body: AskRequest,
    access: UserAccess,
    gateway: GatewayDep,
) -> Translation:
    """Translate a question without running the result."""
    return await gateway.translate(project_id, body.database_id, body.question, body.context)


@router.get("/history", response_model=HistoryResponse)
async def query_history(
    project_id: UUID,
    access: UserAccess,
    gateway: GatewayDep,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> HistoryResponse:
    """Page through the project's query history, newest first."""
    entries, total = await gateway.history(project_id, limit=limit, offset=offset)
    return HistoryResponse(
        data=entries, meta={"total": total, "limit": limit, "offset": offset}
    )
