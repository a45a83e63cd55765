"""Error definitions shared by the core, adapters and transport.

Every error carries a stable code so the HTTP layer can map it to a
status without inspecting messages. Details never carry credentials.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes surfaced to API callers."""

    # Membership
    ALREADY_MEMBER = "ALREADY_MEMBER"
    LAST_ADMIN_VIOLATION = "LAST_ADMIN_VIOLATION"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Connection broker
    DATABASE_NOT_FOUND = "DATABASE_NOT_FOUND"
    UNSUPPORTED_DATABASE_TYPE = "UNSUPPORTED_DATABASE_TYPE"
    INVALID_CONNECTION_CONFIG = "INVALID_CONNECTION_CONFIG"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    TIMEOUT = "TIMEOUT"

    # Query execution
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"
    TRANSLATION_FAILED = "TRANSLATION_FAILED"

    # Authentication
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"


class QuerybridgeError(Exception):
    """Base exception for all querybridge errors.

    Attributes:
        code: Standardized error code.
        message: Human-readable error message.
        details: Additional error details.
        retryable: Whether the caller may retry the operation.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        """Initialize the error."""
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details if self.details else None,
                "retryable": self.retryable,
            }
        }


class AlreadyMemberError(QuerybridgeError):
    """User already holds an active membership in the project."""

    def __init__(self, project_id: Any, user_id: Any) -> None:
        """Initialize already member error."""
        super().__init__(
            code=ErrorCode.ALREADY_MEMBER,
            message="User is already a member of this project",
            details={"project_id": str(project_id), "user_id": str(user_id)},
        )


class LastAdminViolationError(QuerybridgeError):
    """Mutation would leave the project without an active admin."""

    def __init__(self, project_id: Any) -> None:
        """Initialize last admin violation error."""
        super().__init__(
            code=ErrorCode.LAST_ADMIN_VIOLATION,
            message="Project must keep at least one active admin",
            details={"project_id": str(project_id)},
        )


class MemberNotFoundError(QuerybridgeError):
    """No active membership for the user in the project."""

    def __init__(self, project_id: Any, user_id: Any) -> None:
        """Initialize member not found error."""
        super().__init__(
            code=ErrorCode.MEMBER_NOT_FOUND,
            message="Member not found",
            details={"project_id": str(project_id), "user_id": str(user_id)},
        )


class ProjectNotFoundError(QuerybridgeError):
    """Project does not exist or was deleted."""

    def __init__(self, project_id: Any) -> None:
        """Initialize project not found error."""
        super().__init__(
            code=ErrorCode.PROJECT_NOT_FOUND,
            message="Project not found",
            details={"project_id": str(project_id)},
        )


class UserNotFoundError(QuerybridgeError):
    """User does not exist."""

    def __init__(self, user_id: Any) -> None:
        """Initialize user not found error."""
        super().__init__(
            code=ErrorCode.USER_NOT_FOUND,
            message="User not found",
            details={"user_id": str(user_id)},
        )


class DatabaseNotFoundError(QuerybridgeError):
    """Registered database is unknown, inactive, or belongs to another project."""

    def __init__(self, project_id: Any, database_id: Any = None) -> None:
        """Initialize database not found error."""
        details = {"project_id": str(project_id)}
        if database_id is not None:
            details["database_id"] = str(database_id)
        super().__init__(
            code=ErrorCode.DATABASE_NOT_FOUND,
            message="Database not found" if database_id else "Project has no primary database",
            details=details,
        )


class UnsupportedDatabaseTypeError(QuerybridgeError):
    """Database type has no entry in the adapter dispatch table."""

    def __init__(self, database_type: str) -> None:
        """Initialize unsupported database type error."""
        super().__init__(
            code=ErrorCode.UNSUPPORTED_DATABASE_TYPE,
            message=f"Unsupported database type: {database_type}",
            details={"type": database_type},
        )


class InvalidConnectionConfigError(QuerybridgeError):
    """Connection configuration is missing required fields."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        """Initialize invalid connection config error."""
        super().__init__(
            code=ErrorCode.INVALID_CONNECTION_CONFIG,
            message=message,
            details={"missing_fields": missing} if missing else None,
        )


class ConnectionFailedError(QuerybridgeError):
    """Failed to open or validate a connection to an external database."""

    def __init__(
        self,
        message: str = "Failed to connect to database",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize connection failed error."""
        super().__init__(
            code=ErrorCode.CONNECTION_FAILED,
            message=message,
            details=details,
            retryable=True,
        )


class OperationTimeoutError(QuerybridgeError):
    """An external round trip exceeded its deadline."""

    def __init__(self, operation: str, timeout_seconds: float | None = None) -> None:
        """Initialize timeout error."""
        details: dict[str, Any] = {"operation": operation}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            code=ErrorCode.TIMEOUT,
            message=f"{operation} timed out",
            details=details,
            retryable=True,
        )


class QueryExecutionFailedError(QuerybridgeError):
    """The target engine rejected or failed the query."""

    def __init__(self, message: str, database_type: str | None = None) -> None:
        """Initialize query execution failed error."""
        super().__init__(
            code=ErrorCode.QUERY_EXECUTION_FAILED,
            message=message,
            details={"database_type": database_type} if database_type else None,
        )


class TranslationFailedError(QuerybridgeError):
    """Natural-language translation could not produce a query."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        """Initialize translation failed error."""
        super().__init__(
            code=ErrorCode.TRANSLATION_FAILED,
            message=message,
            retryable=retryable,
        )


class InvalidCredentialsError(QuerybridgeError):
    """Identifier or password did not match."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        """Initialize invalid credentials error."""
        super().__init__(code=ErrorCode.INVALID_CREDENTIALS, message=message)


class AccountInactiveError(QuerybridgeError):
    """User account is disabled."""

    def __init__(self) -> None:
        """Initialize account inactive error."""
        super().__init__(code=ErrorCode.ACCOUNT_INACTIVE, message="User account is disabled")


class TokenExpiredError(QuerybridgeError):
    """Token is past its expiry."""

    def __init__(self, message: str = "Token has expired") -> None:
        """Initialize token expired error."""
        super().__init__(code=ErrorCode.TOKEN_EXPIRED, message=message)


class TokenInvalidError(QuerybridgeError):
    """Token is malformed, unknown or revoked."""

    def __init__(self, message: str = "Invalid token") -> None:
        """Initialize token invalid error."""
        super().__init__(code=ErrorCode.TOKEN_INVALID, message=message)


class EmailAlreadyRegisteredError(QuerybridgeError):
    """Registration used an email, phone or document id already on file."""

    def __init__(self, field: str = "email") -> None:
        """Initialize already registered error."""
        super().__init__(
            code=ErrorCode.EMAIL_ALREADY_REGISTERED,
            message=f"A user with this {field} already exists",
            details={"field": field},
        )
