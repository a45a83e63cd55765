"""Registered project databases repository."""

import json
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from asyncpg import Connection

DATABASE_COLUMNS = """
    id, project_id, name, description, type, connection_config_encrypted,
    is_primary, is_active, metadata, created_by, created_at, updated_at, deleted_at
"""

# Column name -> whether the value is stored as JSONB
DATABASE_UPDATE_COLUMNS = {
    "name": False,
    "description": False,
    "connection_config_encrypted": False,
    "is_primary": False,
    "metadata": True,
}


def row_to_dict(row: Any) -> dict[str, Any]:
    data = dict(row)
    metadata = data.get("metadata")
    data["metadata"] = json.loads(metadata) if isinstance(metadata, str) else metadata or {}
    return data


class DatabasesRepository:
    """Repository for project database rows.

    Rows are returned as dicts with the connection config still encrypted.
    """

    def __init__(self, conn: "Connection") -> None:
        """Initialize the repository."""
        self._conn = conn

    async def lock_project(self, project_id: UUID) -> bool:
        """Lock the project row for the rest of the transaction."""
        row = await self._conn.fetchrow(
            "SELECT id FROM projects WHERE id = $1 AND deleted_at IS NULL FOR UPDATE",
            project_id,
        )
        return row is not None

    async def insert_database(
        self,
        project_id: UUID,
        name: str,
        database_type: str,
        encrypted_config: str,
        is_primary: bool,
        created_by: UUID | None,
        description: str | None,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        """Insert a database row."""
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO project_databases
                (project_id, name, description, type, connection_config_encrypted,
                 is_primary, metadata, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING {DATABASE_COLUMNS}
            """,
            project_id,
            name,
            description,
            database_type,
            encrypted_config,
            is_primary,
            json.dumps(metadata),
            created_by,
        )
        return row_to_dict(row)

    async def get_database(self, project_id: UUID, database_id: UUID) -> dict[str, Any] | None:
        """Get an active, non-deleted row scoped to the project."""
        row = await self._conn.fetchrow(
            f"""
            SELECT {DATABASE_COLUMNS} FROM project_databases
            WHERE id = $1 AND project_id = $2 AND is_active = true AND deleted_at IS NULL
            """,
            database_id,
            project_id,
        )
        return row_to_dict(row) if row else None

    async def get_primary(self, project_id: UUID) -> dict[str, Any] | None:
        """Get the project's primary row."""
        row = await self._conn.fetchrow(
            f"""
            SELECT {DATABASE_COLUMNS} FROM project_databases
            WHERE project_id = $1 AND is_primary = true
              AND is_active = true AND deleted_at IS NULL
            """,
            project_id,
        )
        return row_to_dict(row) if row else None

    async def list_databases(self, project_id: UUID) -> list[dict[str, Any]]:
        """List active, non-deleted rows, primary first."""
        rows = await self._conn.fetch(
            f"""
            SELECT {DATABASE_COLUMNS} FROM project_databases
            WHERE project_id = $1 AND is_active = true AND deleted_at IS NULL
            ORDER BY is_primary DESC, name
            """,
            project_id,
        )
        return [row_to_dict(row) for row in rows]

    async def clear_primary(self, project_id: UUID) -> None:
        """Unflag every primary row of the project."""
        await self._conn.execute(
            """
            UPDATE project_databases SET is_primary = false, updated_at = NOW()
            WHERE project_id = $1 AND is_primary = true
            """,
            project_id,
        )

    async def set_primary(self, project_id: UUID, database_id: UUID) -> bool:
        """Flag one row primary."""
        result = await self._conn.execute(
            """
            UPDATE project_databases SET is_primary = true, updated_at = NOW()
            WHERE id = $1 AND project_id = $2 AND deleted_at IS NULL
            """,
            database_id,
            project_id,
        )
        return str(result).split()[-1] != "0"

    async def update_database(
        self, project_id: UUID, database_id: UUID, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Apply column changes."""
        updates = []
        params: list[Any] = []
        for column, value in changes.items():
            if column not in DATABASE_UPDATE_COLUMNS:
                continue
            params.append(json.dumps(value) if DATABASE_UPDATE_COLUMNS[column] else value)
            updates.append(f"{column} = ${len(params)}")

        if not updates:
            return await self.get_database(project_id, database_id)

        params.extend([database_id, project_id])
        row = await self._conn.fetchrow(
            f"""
            UPDATE project_databases SET {", ".join(updates)}, updated_at = NOW()
            WHERE id = ${len(params) - 1} AND project_id = ${len(params)}
              AND deleted_at IS NULL
            RETURNING {DATABASE_COLUMNS}
            """,
            *params,
        )
        return row_to_dict(row) if row else None

    async def soft_delete_database(self, project_id: UUID, database_id: UUID) -> bool:
        """Deactivate, unflag primary and stamp deleted_at."""
        result = await self._conn.execute(
            """
            UPDATE project_databases
            SET is_active = false, is_primary = false, deleted_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND project_id = $2 AND deleted_at IS NULL
            """,
            database_id,
            project_id,
        )
        return str(result).split()[-1] != "0"
