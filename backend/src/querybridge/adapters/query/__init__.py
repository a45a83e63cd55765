"""Query history persistence."""

from querybridge.adapters.query.history_repository import PostgresQueryHistoryRepository

__all__ = ["PostgresQueryHistoryRepository"]
