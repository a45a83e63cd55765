"""Translation of core errors into HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from querybridge.core.exceptions import ErrorCode, QuerybridgeError

logger = structlog.get_logger()

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.ALREADY_MEMBER: 409,
    ErrorCode.LAST_ADMIN_VIOLATION: 409,
    ErrorCode.MEMBER_NOT_FOUND: 404,
    ErrorCode.PROJECT_NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.DATABASE_NOT_FOUND: 404,
    ErrorCode.UNSUPPORTED_DATABASE_TYPE: 400,
    ErrorCode.INVALID_CONNECTION_CONFIG: 400,
    ErrorCode.CONNECTION_FAILED: 502,
    ErrorCode.TIMEOUT: 504,
    ErrorCode.QUERY_EXECUTION_FAILED: 400,
    ErrorCode.TRANSLATION_FAILED: 502,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.ACCOUNT_INACTIVE: 403,
    ErrorCode.TOKEN_EXPIRED: 401,
    ErrorCode.TOKEN_INVALID: 401,
    ErrorCode.EMAIL_ALREADY_REGISTERED: 409,
}


def status_for(error: QuerybridgeError) -> int:
    """HTTP status for an error code, 500 for anything unmapped."""
    return STATUS_BY_CODE.get(error.code, 500)


async def querybridge_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a core error as ``{"error": {...}}``."""
    assert isinstance(exc, QuerybridgeError)
    status_code = status_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "request_failed",
        code=exc.code.value,
        status_code=status_code,
        path=request.url.path,
        retryable=exc.retryable,
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the core error handler on an application."""
    app.add_exception_handler(QuerybridgeError, querybridge_error_handler)
