"""API route modules."""

from fastapi import APIRouter

from querybridge.entrypoints.api.routes.api_keys import router as api_keys_router
from querybridge.entrypoints.api.routes.auth import router as auth_router
from querybridge.entrypoints.api.routes.databases import router as databases_router
from querybridge.entrypoints.api.routes.members import router as members_router
from querybridge.entrypoints.api.routes.projects import router as projects_router
from querybridge.entrypoints.api.routes.query import router as query_router

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(auth_router)
api_router.include_router(projects_router)
api_router.include_router(members_router)
api_router.include_router(databases_router)
api_router.include_router(query_router)
api_router.include_router(api_keys_router)

__all__ = ["api_router"]
