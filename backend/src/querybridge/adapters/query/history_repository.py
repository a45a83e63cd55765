"""PostgreSQL implementation of the query history ledger."""

import json
from typing import Any
from uuid import UUID

from querybridge.adapters.db.app_db import AppDatabase
from querybridge.core.query.types import QueryHistoryCreate, QueryHistoryEntry

HISTORY_COLUMNS = """
    id, project_id, user_id, database_id, query, params, result_metadata,
    is_ai_generated, ai_model, created_at
"""


def _json_value(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


class PostgresQueryHistoryRepository:
    """Append-only query history backed by the application database."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_entry(self, row: dict[str, Any]) -> QueryHistoryEntry:
        """Convert database row to QueryHistoryEntry model."""
        return QueryHistoryEntry(
            id=row["id"],
            project_id=row["project_id"],
            user_id=row["user_id"],
            database_id=row["database_id"],
            query=row["query"],
            params=_json_value(row["params"], []),
            result_metadata=_json_value(row["result_metadata"], {}),
            is_ai_generated=row["is_ai_generated"],
            ai_model=row["ai_model"],
            created_at=row["created_at"],
        )

    async def record(self, entry: QueryHistoryCreate) -> None:
        """Append one entry."""
        await self._db.execute(
            """
            INSERT INTO query_history
                (project_id, user_id, database_id, query, params, result_metadata,
                 is_ai_generated, ai_model)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            entry.project_id,
            entry.user_id,
            entry.database_id,
            entry.query,
            json.dumps(entry.params, default=str),
            json.dumps(entry.result_metadata, default=str),
            entry.is_ai_generated,
            entry.ai_model,
        )

    async def list_for_project(
        self, project_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[QueryHistoryEntry], int]:
        """Page through a project's history, newest first, with a total."""
        rows = await self._db.fetch_all(
            f"""
            SELECT {HISTORY_COLUMNS} FROM query_history
            WHERE project_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
            """,
            project_id,
            limit,
            offset,
        )
        total = await self._db.fetch_value(
            "SELECT COUNT(*) FROM query_history WHERE project_id = $1",
            project_id,
        )
        return [self._row_to_entry(row) for row in rows], int(total or 0)
