"""Query execution domain types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

READ_PREFIXES = ("select", "show", "describe", "explain")

NATURAL_LANGUAGE_PREFIX = "NATURAL_LANGUAGE_QUERY: "


def is_read_statement(query: str) -> bool:
    """Classify a statement by its leading keyword.

    This decides only how results are presented. It is not a security
    control: any statement is forwarded to the engine.
    """
    return query.lstrip().lower().startswith(READ_PREFIXES)


@dataclass
class QueryResult:
    """Raw outcome of running one statement on an external database."""

    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    command: str | None = None


@dataclass(frozen=True)
class ColumnInfo:
    """A column in a schema snapshot."""

    name: str
    data_type: str
    nullable: bool = True


@dataclass(frozen=True)
class TableInfo:
    """A table or collection in a schema snapshot."""

    name: str
    columns: tuple[ColumnInfo, ...] = ()
    schema: str | None = None

    @property
    def qualified_name(self) -> str:
        """Schema-qualified name when a schema is known."""
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass(frozen=True)
class SchemaSnapshot:
    """Tables and columns visible on a target database."""

    tables: tuple[TableInfo, ...] = ()

    def to_prompt_string(self) -> str:
        """Render the snapshot for an LLM prompt."""
        if not self.tables:
            return "No tables available."
        lines = []
        for table in self.tables:
            lines.append(f"Table: {table.qualified_name}")
            for col in table.columns:
                nullable = "" if col.nullable else " NOT NULL"
                lines.append(f"  - {col.name} ({col.data_type}{nullable})")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """Group columns by table name."""
        return {
            table.qualified_name: [
                {"name": c.name, "type": c.data_type, "nullable": c.nullable}
                for c in table.columns
            ]
            for table in self.tables
        }


class Translation(BaseModel):
    """Output of the natural-language translation capability."""

    model_config = ConfigDict(frozen=True)

    query: str
    description: str = ""
    parameters: list[Any] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    warnings: list[str] = Field(default_factory=list)


class QueryHistoryCreate(BaseModel):
    """A query attempt to append to the history ledger."""

    model_config = ConfigDict(frozen=True)

    project_id: UUID
    user_id: UUID | None = None
    database_id: UUID | None = None
    query: str
    params: list[Any] = Field(default_factory=list)
    result_metadata: dict[str, Any] = Field(default_factory=dict)
    is_ai_generated: bool = False
    ai_model: str | None = None


class QueryHistoryEntry(BaseModel):
    """A stored query attempt."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    project_id: UUID
    user_id: UUID | None = None
    database_id: UUID | None = None
    query: str
    params: list[Any] = Field(default_factory=list)
    result_metadata: dict[str, Any] = Field(default_factory=dict)
    is_ai_generated: bool = False
    ai_model: str | None = None
    created_at: datetime


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of probing a registered database."""

    success: bool
    latency_ms: int | None = None
    server_version: str | None = None
    message: str = ""
    error_code: str | None = None
