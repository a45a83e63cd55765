"""PostgreSQL implementation of AuthRepository."""

from datetime import datetime
from typing import Any
from uuid import UUID

from querybridge.adapters.db.app_db import AppDatabase
from querybridge.core.auth.types import StoredRefreshToken, User

USER_COLUMNS = """
    id, email, phone, document_id, first_name, last_name, password_hash,
    is_active, email_verified, last_login_at, created_at
"""


class PostgresAuthRepository:
    """PostgreSQL implementation of auth repository."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_user(self, row: dict[str, Any]) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            email=row["email"],
            phone=row.get("phone"),
            document_id=row.get("document_id"),
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            password_hash=row.get("password_hash"),
            is_active=row.get("is_active", True),
            email_verified=row.get("email_verified", False),
            last_login_at=row.get("last_login_at"),
            created_at=row["created_at"],
        )

    def _row_to_refresh_token(self, row: dict[str, Any]) -> StoredRefreshToken:
        """Convert database row to StoredRefreshToken model."""
        return StoredRefreshToken(
            id=row["id"],
            user_id=row["user_id"],
            token_hash=row["token_hash"],
            expires_at=row["expires_at"],
            revoked_at=row["revoked_at"],
        )

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        row = await self._db.fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        row = await self._db.fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE email = $1",
            email,
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_identifier(self, identifier: str) -> User | None:
        """Get user by email, phone or document id."""
        row = await self._db.fetch_one(
            f"""
            SELECT {USER_COLUMNS} FROM users
            WHERE email = lower($1) OR phone = $1 OR document_id = $1
            ORDER BY (email = lower($1)) DESC
            LIMIT 1
            """,
            identifier,
        )
        return self._row_to_user(row) if row else None

    async def find_conflicting_field(
        self, email: str, phone: str | None, document_id: str | None
    ) -> str | None:
        """Name of the first unique field already taken, if any."""
        row = await self._db.fetch_one(
            """
            SELECT
                bool_or(email = $1) AS email,
                bool_or($2::text IS NOT NULL AND phone = $2) AS phone,
                bool_or($3::text IS NOT NULL AND document_id = $3) AS document_id
            FROM users
            WHERE email = $1 OR phone = $2 OR document_id = $3
            """,
            email,
            phone,
            document_id,
        )
        if not row:
            return None
        for field in ("email", "phone", "document_id"):
            if row.get(field):
                return field
        return None

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
        row = await self._db.execute_returning(
            f"""
            INSERT INTO users (email, password_hash, phone, document_id, first_name, last_name)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING {USER_COLUMNS}
            """,
            email,
            password_hash,
            phone,
            document_id,
            first_name,
            last_name,
        )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_user(row)

    async def update_password(self, user_id: UUID, password_hash: str) -> None:
        """Replace the password hash and clear any pending reset token."""
        await self._db.execute(
            """
            UPDATE users
            SET password_hash = $2, password_reset_token_hash = NULL,
                password_reset_expires_at = NULL, updated_at = NOW()
            WHERE id = $1
            """,
            user_id,
            password_hash,
        )

    async def touch_last_login(self, user_id: UUID) -> None:
        """Stamp a successful login."""
        await self._db.execute("UPDATE users SET last_login_at = NOW() WHERE id = $1", user_id)

    # Single-use tokens
    async def set_password_reset_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> None:
        """Store a reset token hash, replacing any previous one."""
        await self._db.execute(
            """
            UPDATE users
            SET password_reset_token_hash = $2, password_reset_expires_at = $3
            WHERE id = $1
            """,
            user_id,
            token_hash,
            expires_at,
        )

    async def get_user_by_reset_token(self, token_hash: str) -> tuple[User, datetime] | None:
        """Find the user holding a reset token, with its expiry."""
        row = await self._db.fetch_one(
            f"""
            SELECT {USER_COLUMNS}, password_reset_expires_at FROM users
            WHERE password_reset_token_hash = $1 AND is_active = true
            """,
            token_hash,
        )
        if not row:
            return None
        return self._row_to_user(row), row["password_reset_expires_at"]

    async def set_verification_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> None:
        """Store a verification token hash, replacing any previous one."""
        await self._db.execute(
            """
            UPDATE users
            SET verification_token_hash = $2, verification_expires_at = $3
            WHERE id = $1
            """,
            user_id,
            token_hash,
            expires_at,
        )

    async def get_user_by_verification_token(
        self, token_hash: str
    ) -> tuple[User, datetime | None] | None:
        """Find the user holding a verification token, with its expiry."""
        row = await self._db.fetch_one(
            f"""
            SELECT {USER_COLUMNS}, verification_expires_at FROM users
            WHERE verification_token_hash = $1
            """,
            token_hash,
        )
        if not row:
            return None
        return self._row_to_user(row), row["verification_expires_at"]

    async def mark_email_verified(self, user_id: UUID) -> None:
        """Flag the email verified and clear the verification token."""
        await self._db.execute(
            """
            UPDATE users
            SET email_verified = true, verification_token_hash = NULL,
                verification_expires_at = NULL, updated_at = NOW()
            WHERE id = $1
            """,
            user_id,
        )

    # Refresh tokens
    async def create_refresh_token(
        self, user_id: UUID, token_hash: str, expires_at: datetime
    ) -> StoredRefreshToken:
        """Store a refresh token hash."""
        row = await self._db.execute_returning(
            """
            INSERT INTO refresh_tokens (user_id, token_hash, expires_at)
            VALUES ($1, $2, $3)
            RETURNING id, user_id, token_hash, expires_at, revoked_at
            """,
            user_id,
            token_hash,
            expires_at,
        )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_refresh_token(row)

    async def get_refresh_token(self, token_hash: str) -> StoredRefreshToken | None:
        """Get a refresh token by hash, revoked or not."""
        row = await self._db.fetch_one(
            """
            SELECT id, user_id, token_hash, expires_at, revoked_at
            FROM refresh_tokens WHERE token_hash = $1
            """,
            token_hash,
        )
        return self._row_to_refresh_token(row) if row else None

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        """Revoke one token. Returns False if it was already revoked."""
        result = await self._db.execute(
            """
            UPDATE refresh_tokens SET revoked_at = NOW()
            WHERE id = $1 AND revoked_at IS NULL
            """,
            token_id,
        )
        return result.split()[-1] != "0"

    async def revoke_user_refresh_tokens(self, user_id: UUID) -> int:
        """Revoke every live token of a user."""
        result = await self._db.execute(
            """
            UPDATE refresh_tokens SET revoked_at = NOW()
            WHERE user_id = $1 AND revoked_at IS NULL
            """,
            user_id,
        )
        return int(result.split()[-1])
