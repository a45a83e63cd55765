"""Document store adapters."""

from querybridge.adapters.datasource.document.mongodb import MongoDBAdapter

__all__ = ["MongoDBAdapter"]
