"""Microsoft SQL Server adapter implementation."""

from __future__ import annotations

from typing import Any

from querybridge.adapters.datasource.sql.base import SQLAdapter, leading_command
from querybridge.core.exceptions import ConnectionFailedError
from querybridge.core.projects.types import DatabaseType
from querybridge.core.query.types import QueryResult, is_read_statement

MSSQL_SCHEMA_QUERY = """
    SELECT table_schema, table_name, column_name, data_type, is_nullable
    FROM information_schema.columns
    ORDER BY table_schema, table_name, ordinal_position
"""


class MSSQLAdapter(SQLAdapter):
    """SQL Server handle backed by an aioodbc pool.

    Parameters use ODBC ``?`` placeholders.
    """

    schema_query = MSSQL_SCHEMA_QUERY

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize SQL Server adapter.

        Args:
            config: dsn, minsize, maxsize, timeout.
        """
        super().__init__(config)
        self._pool: Any = None

    @property
    def source_type(self) -> DatabaseType:
        """Get the source type for this adapter."""
        return DatabaseType.MSSQL

    async def connect(self) -> None:
        """Create the connection pool."""
        try:
            import aioodbc
        except ImportError as e:
            raise ConnectionFailedError(
                message="aioodbc is not available",
                details={"error": str(e)},
            ) from e

        try:
            self._pool = await aioodbc.create_pool(
                dsn=self._config["dsn"],
                minsize=self._config.get("minsize", 1),
                maxsize=self._config.get("maxsize", 5),
                timeout=self._config.get("timeout", 10),
                autocommit=True,
            )
            self._connected = True
        except Exception as e:
            raise ConnectionFailedError(
                message=f"Failed to connect to SQL Server: {type(e).__name__}",
                details={"host": self._config.get("host"), "port": self._config.get("port")},
            ) from e

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
        self._connected = False

    async def ping(self) -> None:
        """Run ``SELECT 1``."""
        await self.execute("SELECT 1", [])

    async def execute(self, query: str, params: list[Any]) -> QueryResult:
        """Execute a statement with ``?`` bound parameters."""
        if self._pool is None:
            raise ConnectionFailedError(message="Not connected to SQL Server")

        async with self._pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, *params)
                columns = [d[0] for d in cur.description or []]
                records = await cur.fetchall() if cur.description else []
                affected = cur.rowcount

        rows = [dict(zip(columns, record, strict=False)) for record in records]
        count = len(rows) if is_read_statement(query) else max(affected, 0)
        return QueryResult(
            columns=columns,
            rows=rows,
            row_count=count,
            command=leading_command(query),
        )

    async def server_version(self) -> str | None:
        """Get the server version string."""
        result = await self.execute("SELECT @@VERSION AS version", [])
        if not result.rows:
            return None
        return str(result.rows[0]["version"]).splitlines()[0]
