"""Read-only database lookup backing the connection broker."""

from uuid import UUID

from querybridge.adapters.db.app_db import AppDatabase
from querybridge.adapters.projects.databases_repository import DATABASE_COLUMNS, row_to_dict
from querybridge.core.interfaces import ConfigCipher
from querybridge.core.projects.databases import row_to_database
from querybridge.core.projects.types import ProjectDatabase


class DatabaseCatalog:
    """Resolves registered databases outside any caller transaction."""

    def __init__(self, db: AppDatabase, cipher: ConfigCipher) -> None:
        """Initialize the catalog.

        Args:
            db: Application database instance.
            cipher: Decrypts stored connection configs.
        """
        self._db = db
        self._cipher = cipher

    async def get_database(self, project_id: UUID, database_id: UUID) -> ProjectDatabase | None:
        """Get an available database belonging to the project."""
        row = await self._db.fetch_one(
            f"""
            SELECT {DATABASE_COLUMNS} FROM project_databases
            WHERE id = $1 AND project_id = $2 AND is_active = true AND deleted_at IS NULL
            """,
            database_id,
            project_id,
        )
        return row_to_database(row_to_dict(row), self._cipher) if row else None

    async def get_primary_database(self, project_id: UUID) -> ProjectDatabase | None:
        """Get the project's primary database."""
        row = await self._db.fetch_one(
            f"""
            SELECT {DATABASE_COLUMNS} FROM project_databases
            WHERE project_id = $1 AND is_primary = true
              AND is_active = true AND deleted_at IS NULL
            """,
            project_id,
        )
        return row_to_database(row_to_dict(row), self._cipher) if row else None
