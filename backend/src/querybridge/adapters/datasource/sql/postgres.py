"""PostgreSQL adapter implementation."""

from __future__ import annotations

from typing import Any

from querybridge.adapters.datasource.sql.base import SQLAdapter, leading_command, parse_status
from querybridge.core.exceptions import ConnectionFailedError
from querybridge.core.projects.types import DatabaseType
from querybridge.core.query.types import QueryResult, is_read_statement


class PostgresAdapter(SQLAdapter):
    """PostgreSQL handle backed by a small asyncpg pool.

    Parameters use asyncpg's ``$1, $2`` placeholders.
    """

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize PostgreSQL adapter.

        Args:
            config: host, port, database, user, password, ssl, min_size,
                max_size, command_timeout.
        """
        super().__init__(config)
        self._pool: Any = None

    @property
    def source_type(self) -> DatabaseType:
        """Get the source type for this adapter."""
        return DatabaseType.POSTGRESQL

    async def connect(self) -> None:
        """Create the connection pool."""
        try:
            import asyncpg
        except ImportError as e:
            raise ConnectionFailedError(
                message="asyncpg is not installed",
                details={"error": str(e)},
            ) from e

        try:
            self._pool = await asyncpg.create_pool(
                host=self._config["host"],
                port=self._config["port"],
                database=self._config["database"],
                user=self._config.get("user"),
                password=self._config.get("password"),
                ssl=self._config.get("ssl"),
                min_size=self._config.get("min_size", 1),
                max_size=self._config.get("max_size", 5),
                command_timeout=self._config.get("command_timeout"),
            )
            self._connected = True
        except asyncpg.InvalidPasswordError as e:
            raise ConnectionFailedError(
                message="Password authentication failed for PostgreSQL",
            ) from e
        except asyncpg.InvalidCatalogNameError as e:
            raise ConnectionFailedError(
                message=f"Database does not exist: {self._config.get('database')}",
            ) from e
        except Exception as e:
            raise ConnectionFailedError(
                message=f"Failed to connect to PostgreSQL: {e}",
                details={"host": self._config.get("host"), "port": self._config.get("port")},
            ) from e

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._connected = False

    async def ping(self) -> None:
        """Run ``SELECT 1``."""
        self._require_pool()
        async with self._pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

    async def execute(self, query: str, params: list[Any]) -> QueryResult:
        """Execute a statement through a prepared statement."""
        self._require_pool()
        async with self._pool.acquire() as conn:
            stmt = await conn.prepare(query)
            records = await stmt.fetch(*params)
            command, count = parse_status(stmt.get_statusmsg())

        rows = [dict(r) for r in records]
        columns = [attr.name for attr in stmt.get_attributes()]
        if is_read_statement(query):
            count = len(rows)
        return QueryResult(
            columns=columns,
            rows=rows,
            row_count=count,
            command=command or leading_command(query),
        )

    async def server_version(self) -> str | None:
        """Get the server version string."""
        self._require_pool()
        async with self._pool.acquire() as conn:
            version: str = await conn.fetchval("SHOW server_version")
        return f"PostgreSQL {version}"

    def _require_pool(self) -> None:
        if self._pool is None:
            raise ConnectionFailedError(message="Not connected to PostgreSQL")
