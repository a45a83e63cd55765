"""Shared behaviour for SQL engine adapters."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from querybridge.adapters.datasource.base import BaseAdapter
from querybridge.core.query.types import ColumnInfo, SchemaSnapshot, TableInfo

INFORMATION_SCHEMA_QUERY = """
    SELECT table_schema, table_name, column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema NOT IN ('pg_catalog', 'information_schema', 'sys',
                               'mysql', 'performance_schema')
    ORDER BY table_schema, table_name, ordinal_position
"""


def leading_command(query: str) -> str:
    """First keyword of a statement, upper-cased."""
    parts = query.strip().split(None, 1)
    return parts[0].upper() if parts else ""


def parse_status(status: str | None) -> tuple[str | None, int]:
    """Split a command tag such as ``INSERT 0 3`` into command and count."""
    if not status:
        return None, 0
    parts = status.split()
    command = parts[0]
    count = int(parts[-1]) if len(parts) > 1 and parts[-1].isdigit() else 0
    return command, count


def group_columns(rows: Iterable[Mapping[str, Any]]) -> SchemaSnapshot:
    """Build a snapshot from information_schema.columns style rows."""
    tables: dict[tuple[str | None, str], list[ColumnInfo]] = {}
    for row in rows:
        key = (row.get("table_schema"), row["table_name"])
        tables.setdefault(key, []).append(
            ColumnInfo(
                name=row["column_name"],
                data_type=str(row["data_type"]),
                nullable=str(row.get("is_nullable", "YES")).upper() == "YES",
            )
        )
    return SchemaSnapshot(
        tables=tuple(
            TableInfo(name=name, schema=schema, columns=tuple(columns))
            for (schema, name), columns in tables.items()
        )
    )


class SQLAdapter(BaseAdapter):
    """Base class for SQL engines that expose information_schema."""

    schema_query: str = INFORMATION_SCHEMA_QUERY

    async def get_schema(self) -> SchemaSnapshot:
        """Introspect columns grouped by table."""
        result = await self.execute(self.schema_query, [])
        return group_columns(result.rows)
