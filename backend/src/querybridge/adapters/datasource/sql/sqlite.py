"""SQLite adapter implementation.

Uses the built-in sqlite3 module. Calls run in the default thread pool so
the event loop never blocks on file I/O.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from querybridge.adapters.datasource.sql.base import SQLAdapter, leading_command
from querybridge.core.exceptions import ConnectionFailedError
from querybridge.core.projects.types import DatabaseType
from querybridge.core.query.types import (
    ColumnInfo,
    QueryResult,
    SchemaSnapshot,
    TableInfo,
    is_read_statement,
)

T = TypeVar("T")


class SQLiteAdapter(SQLAdapter):
    """SQLite handle over a single shared connection.

    Parameters use ``?`` placeholders. Access to the connection is
    serialised with a lock since sqlite3 connections are not thread-safe.
    """

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize SQLite adapter.

        Args:
            config: Configuration dictionary with:
                - path: Path to SQLite file, ``:memory:`` or a file: URI
                - read_only: Open in read-only mode (default False)
        """
        super().__init__(config)
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def source_type(self) -> DatabaseType:
        """Get the source type for this adapter."""
        return DatabaseType.SQLITE

    def _build_uri(self) -> str:
        path = self._config.get("path", "")
        if path.startswith("file:"):
            return path
        uri = f"file:{path}"
        if self._config.get("read_only", False):
            uri += "?mode=ro"
        return uri

    async def connect(self) -> None:
        """Open the database file."""
        path = self._config.get("path", "")
        if not path.startswith("file:") and path != ":memory:" and not Path(path).exists():
            raise ConnectionFailedError(
                message=f"SQLite database file not found: {path}",
                details={"path": path},
            )

        try:
            self._conn = sqlite3.connect(self._build_uri(), uri=True, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._connected = True
        except sqlite3.Error as e:
            raise ConnectionFailedError(
                message=f"Failed to open SQLite database: {e}",
                details={"path": path},
            ) from e

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._connected = False

    async def ping(self) -> None:
        """Run ``SELECT 1``."""
        await self.execute("SELECT 1", [])

    async def execute(self, query: str, params: list[Any]) -> QueryResult:
        """Execute a statement with ``?`` bound parameters."""
        conn = self._require_conn()

        def _run() -> QueryResult:
            cursor = conn.execute(query, params)
            try:
                columns = [d[0] for d in cursor.description or []]
                rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
                affected = cursor.rowcount
            finally:
                cursor.close()
            conn.commit()
            count = len(rows) if is_read_statement(query) else max(affected, 0)
            return QueryResult(
                columns=columns,
                rows=rows,
                row_count=count,
                command=leading_command(query),
            )

        return await self._in_thread(_run)

    async def get_schema(self) -> SchemaSnapshot:
        """Introspect tables and views via sqlite_master and table_info."""
        conn = self._require_conn()

        def _introspect() -> SchemaSnapshot:
            names = [
                row["name"]
                for row in conn.execute(
                    "SELECT name FROM sqlite_master "
                    "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%' "
                    "ORDER BY name"
                )
            ]
            tables = []
            for name in names:
                info = conn.execute("SELECT * FROM pragma_table_info(?)", (name,)).fetchall()
                columns = tuple(
                    ColumnInfo(
                        name=col["name"],
                        data_type=col["type"] or "ANY",
                        nullable=not col["notnull"],
                    )
                    for col in info
                )
                tables.append(TableInfo(name=name, columns=columns))
            return SchemaSnapshot(tables=tuple(tables))

        return await self._in_thread(_introspect)

    async def server_version(self) -> str | None:
        """Get the SQLite library version."""
        return f"SQLite {sqlite3.sqlite_version}"

    async def _in_thread(self, func: Callable[[], T]) -> T:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, func)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ConnectionFailedError(message="Not connected to SQLite")
        return self._conn
