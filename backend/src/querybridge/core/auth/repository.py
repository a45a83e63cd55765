"""Auth repository protocol for database operations."""

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from querybridge.core.auth.types import StoredRefreshToken, User


@runtime_checkable
class AuthRepository(Protocol):
    """Protocol for user and session persistence.

    Implementations provide actual database access (PostgreSQL, etc).
    """

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        ...

    async def get_user_by_identifier(self, identifier: str) -> User | None:
        """Get user by email, phone or document id."""
        ...

    async def find_conflicting_field(
        self, email: str, phone: str | None, document_id: str | None
    ) -> str | None:
        """Name of the first unique field already taken, if any."""
        ...

    async def create_user(
        self,
        email: str,
        password_hash: str,
        phone: str | None = None,
        document_id: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Create a new user."""
        ...

    async def update_password(self, user_id: UUID, password_hash: str) -> None:
        """Replace the password hash and clear any pending reset token."""
        ...

    async def touch_last_login(self, user_id: UUID) -> None:
        """Stamp a successful login."""
        ...

    # Single-use tokens
    async def set_password_reset_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> None:
        """Store a reset token hash, replacing any previous one."""
        ...

    async def get_user_by_reset_token(self, token_hash: str) -> tuple[User, datetime] | None:
        """Find the user holding a reset token, with its expiry."""
        ...

    async def set_verification_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> None:
        """Store a verification token hash, replacing any previous one."""
        ...

    async def get_user_by_verification_token(
        self, token_hash: str
    ) -> tuple[User, datetime | None] | None:
        """Find the user holding a verification token, with its expiry."""
        ...

    async def mark_email_verified(self, user_id: UUID) -> None:
        """Flag the email verified and clear the verification token."""
        ...

    # Refresh tokens
    async def create_refresh_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> StoredRefreshToken:
        """Store a refresh token hash."""
        ...

    async def get_refresh_token(self, token_hash: str) -> StoredRefreshToken | None:
        """Get a refresh token by hash, revoked or not."""
        ...

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        """Revoke one token. Returns False if it was already revoked."""
        ...

    async def revoke_user_refresh_tokens(self, user_id: UUID) -> int:
        """Revoke every live token of a user."""
        ...
