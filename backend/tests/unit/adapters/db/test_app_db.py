"""Tests for the application database adapter."""

from unittest.mock import AsyncMock, patch

import pytest
from querybridge.adapters.db.app_db import AppDatabase, schema_statements


def table_position(statements: list[str], table: str) -> int:
    """Index of the CREATE TABLE statement for a table."""
    marker = f"CREATE TABLE IF NOT EXISTS {table} "
    return next(i for i, s in enumerate(statements) if s.strip().startswith(marker))


class TestSchemaStatements:
    """Tests for generated DDL."""

    def test_tables_follow_foreign_keys(self) -> None:
        """Referenced tables are created first."""
        statements = schema_statements()

        assert statements[0] == "CREATE EXTENSION IF NOT EXISTS pgcrypto"
        assert table_position(statements, "users") < table_position(statements, "projects")
        assert table_position(statements, "projects") < table_position(
            statements, "project_members"
        )
        assert table_position(statements, "project_databases") < table_position(
            statements, "query_history"
        )

    def test_membership_uniqueness_and_admin_index(self) -> None:
        """One row per (project, user) and a partial index on active admins."""
        ddl = "\n".join(schema_statements())

        assert "uq_project_members_project_user" in ddl
        assert "ix_project_members_active_admins" in ddl
        assert "WHERE is_active AND role = 'admin'" in ddl


class TestAppDatabase:
    """Tests for pool-level helpers."""

    @pytest.fixture
    def db(self) -> AppDatabase:
        """Create AppDatabase instance."""
        return AppDatabase(dsn="postgresql://localhost/test")  # pragma: allowlist secret

    async def test_acquire_requires_pool(self, db: AppDatabase) -> None:
        """Using the database before connect() fails loudly."""
        with pytest.raises(RuntimeError):
            async with db.acquire():
                pass

    async def test_health_check_ok(self, db: AppDatabase) -> None:
        """Healthy when SELECT 1 answers."""
        with patch.object(db, "fetch_value", new_callable=AsyncMock, return_value=1):
            assert await db.health_check() is True

    async def test_health_check_failure(self, db: AppDatabase) -> None:
        """Unhealthy when the pool raises."""
        with patch.object(
            db, "fetch_value", new_callable=AsyncMock, side_effect=OSError("refused")
        ):
            assert await db.health_check() is False

    async def test_close_without_pool(self, db: AppDatabase) -> None:
        """Closing an unconnected database is a no-op."""
        await db.close()

        assert db.pool is None
