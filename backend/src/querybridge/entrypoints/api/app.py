"""FastAPI application definition."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from querybridge import __version__

from .deps import lifespan, settings
from .errors import register_exception_handlers
from .routes import api_router

app = FastAPI(
    title="querybridge",
    description="Multi-tenant query gateway for project databases",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", response_model=None)
async def health_check(request: Request) -> dict[str, Any] | JSONResponse:
    """Health check endpoint."""
    database_ok = await request.app.state.app_db.health_check()
    body = {
        "status": "healthy" if database_ok else "degraded",
        "database": database_ok,
        "cached_connections": len(request.app.state.broker),
    }
    if not database_ok:
        return JSONResponse(status_code=503, content=body)
    return body
