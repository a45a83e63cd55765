"""MongoDB adapter implementation.

The query text is a JSON command document passed to ``db.command``, for
example ``{"find": "orders", "filter": {"status": "open"}}``.
"""

from __future__ import annotations

import json
from typing import Any

from querybridge.adapters.datasource.base import BaseAdapter
from querybridge.core.exceptions import ConnectionFailedError, QueryExecutionFailedError
from querybridge.core.projects.types import DatabaseType
from querybridge.core.query.types import ColumnInfo, QueryResult, SchemaSnapshot, TableInfo


def _to_plain(documents: Any) -> Any:
    """Convert BSON values into JSON-safe structures."""
    from bson import json_util

    return json.loads(json_util.dumps(documents))


class MongoDBAdapter(BaseAdapter):
    """MongoDB handle backed by a motor client."""

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize MongoDB adapter.

        Args:
            config: url, database, max_pool_size, server_selection_timeout_ms.
        """
        super().__init__(config)
        self._client: Any = None
        self._db: Any = None

    @property
    def source_type(self) -> DatabaseType:
        """Get the source type for this adapter."""
        return DatabaseType.MONGODB

    async def connect(self) -> None:
        """Create the client. Network I/O is deferred to ``ping``."""
        try:
            from motor.motor_asyncio import AsyncIOMotorClient
        except ImportError as e:
            raise ConnectionFailedError(
                message="motor is not installed",
                details={"error": str(e)},
            ) from e

        try:
            self._client = AsyncIOMotorClient(
                self._config["url"],
                maxPoolSize=self._config.get("max_pool_size", 5),
                serverSelectionTimeoutMS=self._config.get("server_selection_timeout_ms", 10000),
            )
            self._db = self._client[self._config["database"]]
            self._connected = True
        except Exception as e:
            raise ConnectionFailedError(
                message=f"Failed to create MongoDB client: {type(e).__name__}",
            ) from e

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
        self._connected = False

    async def ping(self) -> None:
        """Run the ``ping`` admin command."""
        self._require_db()
        await self._client.admin.command("ping")

    async def execute(self, query: str, params: list[Any]) -> QueryResult:
        """Run a JSON command document.

        Positional parameters have no meaning for command documents and are
        rejected rather than spliced into the text.
        """
        db = self._require_db()
        if params:
            raise QueryExecutionFailedError(
                "MongoDB commands take no positional parameters", self.database_type
            )
        try:
            command = json.loads(query)
        except json.JSONDecodeError as e:
            raise QueryExecutionFailedError(
                f"MongoDB query must be a JSON command document: {e}", self.database_type
            ) from e
        if not isinstance(command, dict) or not command:
            raise QueryExecutionFailedError(
                "MongoDB query must be a non-empty JSON object", self.database_type
            )

        response = await db.command(command)
        cursor = response.get("cursor")
        if cursor is not None:
            documents = cursor.get("firstBatch", [])
        else:
            documents = [response]

        rows = _to_plain(documents)
        columns = sorted({key for row in rows for key in row})
        count = response.get("n", len(rows)) if cursor is None else len(rows)
        return QueryResult(
            columns=columns,
            rows=rows,
            row_count=int(count),
            command=next(iter(command)),
        )

    async def get_schema(self) -> SchemaSnapshot:
        """List collections with fields inferred from one sample document."""
        db = self._require_db()
        tables = []
        for name in sorted(await db.list_collection_names()):
            sample = await db[name].find_one()
            columns = tuple(
                ColumnInfo(name=key, data_type=type(value).__name__)
                for key, value in (sample or {}).items()
            )
            tables.append(TableInfo(name=name, columns=columns))
        return SchemaSnapshot(tables=tuple(tables))

    async def server_version(self) -> str | None:
        """Get the server version string."""
        self._require_db()
        info = await self._client.server_info()
        return f"MongoDB {info.get('version', 'unknown')}"

    def _require_db(self) -> Any:
        if self._db is None:
            raise ConnectionFailedError(message="Not connected to MongoDB")
        return self._db
