"""MySQL adapter implementation."""

from __future__ import annotations

from typing import Any

from querybridge.adapters.datasource.sql.base import SQLAdapter, leading_command
from querybridge.core.exceptions import ConnectionFailedError
from querybridge.core.projects.types import DatabaseType
from querybridge.core.query.types import QueryResult, is_read_statement

MYSQL_SCHEMA_QUERY = """
    SELECT table_schema, table_name, column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema = DATABASE()
    ORDER BY table_name, ordinal_position
"""


class MySQLAdapter(SQLAdapter):
    """MySQL handle backed by an aiomysql pool.

    Parameters use the driver's ``%s`` placeholders.
    """

    schema_query = MYSQL_SCHEMA_QUERY

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize MySQL adapter."""
        super().__init__(config)
        self._pool: Any = None

    @property
    def source_type(self) -> DatabaseType:
        """Get the source type for this adapter."""
        return DatabaseType.MYSQL

    async def connect(self) -> None:
        """Create the connection pool."""
        try:
            import aiomysql
        except ImportError as e:
            raise ConnectionFailedError(
                message="aiomysql is not installed",
                details={"error": str(e)},
            ) from e

        ssl_context = None
        if self._config.get("ssl"):
            import ssl

            ssl_context = ssl.create_default_context()

        try:
            self._pool = await aiomysql.create_pool(
                host=self._config["host"],
                port=self._config["port"],
                user=self._config.get("user") or "",
                password=self._config.get("password") or "",
                db=self._config["db"],
                ssl=ssl_context,
                connect_timeout=self._config.get("connect_timeout", 10),
                minsize=self._config.get("minsize", 1),
                maxsize=self._config.get("maxsize", 5),
                autocommit=True,
            )
            self._connected = True
        except Exception as e:
            error_str = str(e).lower()
            if "access denied" in error_str:
                message = "Access denied for MySQL user"
            elif "unknown database" in error_str:
                message = f"Database does not exist: {self._config.get('db')}"
            else:
                message = f"Failed to connect to MySQL: {e}"
            raise ConnectionFailedError(
                message=message,
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
        """Execute a statement with ``%s`` bound parameters."""
        if self._pool is None:
            raise ConnectionFailedError(message="Not connected to MySQL")

        import aiomysql

        async with self._pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cur:
                await cur.execute(query, params or None)
                rows = list(await cur.fetchall()) if cur.description else []
                columns = [d[0] for d in cur.description or []]
                affected = cur.rowcount

        count = len(rows) if is_read_statement(query) else max(affected, 0)
        return QueryResult(
            columns=columns,
            rows=rows,
            row_count=count,
            command=leading_command(query),
        )

    async def server_version(self) -> str | None:
        """Get the server version string."""
        result = await self.execute("SELECT VERSION() AS version", [])
        return f"MySQL {result.rows[0]['version']}" if result.rows else None
