"""Application database adapters."""

from querybridge.adapters.db.app_db import AppDatabase, schema_statements

__all__ = ["AppDatabase", "schema_statements"]
