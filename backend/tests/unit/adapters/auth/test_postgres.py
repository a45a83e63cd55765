"""Tests for PostgreSQL auth repository."""

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from querybridge.adapters.auth.postgres import PostgresAuthRepository
from querybridge.core.auth import AuthRepository


def user_row(**overrides: Any) -> dict[str, Any]:
    """A users row."""
    row: dict[str, Any] = {
        "id": uuid4(),
        "email": "ana@example.com",
        "phone": None,
        "document_id": None,
        "first_name": "Ana",
        "last_name": "Lima",
        "password_hash": "hashed",  # pragma: allowlist secret
        "is_active": True,
        "email_verified": False,
        "last_login_at": None,
        "created_at": datetime.now(UTC),
    }
    row.update(overrides)
    return row


class TestPostgresAuthRepository:
    """Test PostgresAuthRepository implementation."""

    @pytest.fixture
    def mock_db(self) -> MagicMock:
        """Create mock database."""
        return MagicMock()

    @pytest.fixture
    def repo(self, mock_db: MagicMock) -> PostgresAuthRepository:
        """Create repository with mock database."""
        return PostgresAuthRepository(mock_db)

    def test_implements_protocol(self, repo: PostgresAuthRepository) -> None:
        """Repository should implement AuthRepository protocol."""
        assert isinstance(repo, AuthRepository)

    async def test_get_user_by_identifier(
        self, repo: PostgresAuthRepository, mock_db: MagicMock
    ) -> None:
        """Email, phone and document id are all matched."""
        row = user_row()
        mock_db.fetch_one = AsyncMock(return_value=row)

        user = await repo.get_user_by_identifier("+5511999")

        assert user is not None
        assert user.display_name == "Ana Lima"
        query = mock_db.fetch_one.call_args.args[0]
        assert "phone = $1" in query
        assert "document_id = $1" in query

    async def test_get_user_not_found(
        self, repo: PostgresAuthRepository, mock_db: MagicMock
    ) -> None:
        """Should return None when user not found."""
        mock_db.fetch_one = AsyncMock(return_value=None)

        assert await repo.get_user_by_email("ghost@example.com") is None

    @pytest.mark.parametrize(
        ("flags", "expected"),
        [
            ({"email": False, "phone": True, "document_id": True}, "phone"),
            ({"email": None, "phone": None, "document_id": None}, None),
        ],
    )
    async def test_find_conflicting_field(
        self,
        repo: PostgresAuthRepository,
        mock_db: MagicMock,
        flags: dict[str, Any],
        expected: str | None,
    ) -> None:
        """The first taken field is reported."""
        mock_db.fetch_one = AsyncMock(return_value=flags)

        assert await repo.find_conflicting_field("a@b.c", "+55", "123") == expected

    async def test_revoke_refresh_token_reports_race(
        self, repo: PostgresAuthRepository, mock_db: MagicMock
    ) -> None:
        """An already revoked token updates no rows."""
        mock_db.execute = AsyncMock(return_value="UPDATE 0")

        assert await repo.revoke_refresh_token(uuid4()) is False

    async def test_revoke_user_refresh_tokens_counts(
        self, repo: PostgresAuthRepository, mock_db: MagicMock
    ) -> None:
        """Returns the number of revoked tokens."""
        mock_db.execute = AsyncMock(return_value="UPDATE 3")

        assert await repo.revoke_user_refresh_tokens(uuid4()) == 3
