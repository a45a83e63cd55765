"""Query execution gateway and its types."""

from querybridge.core.query.gateway import QueryGateway
from querybridge.core.query.types import (
    QueryHistoryCreate,
    QueryHistoryEntry,
    QueryResult,
    SchemaSnapshot,
    Translation,
    is_read_statement,
)

__all__ = [
    "QueryGateway",
    "QueryHistoryCreate",
    "QueryHistoryEntry",
    "QueryResult",
    "SchemaSnapshot",
    "Translation",
    "is_read_statement",
]
