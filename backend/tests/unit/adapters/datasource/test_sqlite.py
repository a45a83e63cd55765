"""Tests for the SQLite adapter."""

import sqlite3
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from querybridge.adapters.datasource.sql.sqlite import SQLiteAdapter
from querybridge.core.exceptions import ConnectionFailedError


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """A sqlite file with one small table."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, status TEXT NOT NULL)")
    conn.executemany("INSERT INTO orders (status) VALUES (?)", [("open",), ("closed",)])
    conn.commit()
    conn.close()
    return path


@pytest.fixture
async def adapter(db_path: Path) -> AsyncIterator[SQLiteAdapter]:
    """Connected adapter, closed after the test."""
    adapter = SQLiteAdapter({"path": str(db_path), "read_only": False})
    await adapter.connect()
    yield adapter
    await adapter.close()


class TestSQLiteAdapter:
    """Tests for SQLiteAdapter."""

    async def test_select_with_bound_params(self, adapter: SQLiteAdapter) -> None:
        """Parameters are bound, never spliced."""
        result = await adapter.execute("SELECT id, status FROM orders WHERE status = ?", ["open"])

        assert result.columns == ["id", "status"]
        assert result.rows == [{"id": 1, "status": "open"}]
        assert result.row_count == 1
        assert result.command == "SELECT"

    async def test_write_reports_affected_rows(self, adapter: SQLiteAdapter) -> None:
        """Writes report the rows they touched."""
        result = await adapter.execute("UPDATE orders SET status = ?", ["archived"])

        assert result.rows == []
        assert result.row_count == 2
        assert result.command == "UPDATE"

    async def test_schema_snapshot(self, adapter: SQLiteAdapter) -> None:
        """Tables and columns are introspected."""
        schema = await adapter.get_schema()

        assert [t.name for t in schema.tables] == ["orders"]
        status = schema.tables[0].columns[1]
        assert status.name == "status"
        assert status.nullable is False

    async def test_ping_and_version(self, adapter: SQLiteAdapter) -> None:
        """Ping succeeds on an open handle and the version is reported."""
        await adapter.ping()

        assert (await adapter.server_version() or "").startswith("SQLite ")

    async def test_missing_file(self, tmp_path: Path) -> None:
        """Connecting never creates a file."""
        adapter = SQLiteAdapter({"path": str(tmp_path / "absent.db")})

        with pytest.raises(ConnectionFailedError):
            await adapter.connect()

        assert not (tmp_path / "absent.db").exists()

    async def test_read_only_rejects_writes(self, db_path: Path) -> None:
        """A read-only handle refuses writes."""
        adapter = SQLiteAdapter({"path": str(db_path), "read_only": True})
        await adapter.connect()
        try:
            with pytest.raises(sqlite3.OperationalError):
                await adapter.execute("DELETE FROM orders", [])
        finally:
            await adapter.close()

    async def test_close_is_idempotent(self, adapter: SQLiteAdapter) -> None:
        """Closing twice is harmless."""
        await adapter.close()
        await adapter.close()

        assert adapter.is_connected is False
