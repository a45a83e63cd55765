"""SQL engine adapters."""

from querybridge.adapters.datasource.sql.base import SQLAdapter
from querybridge.adapters.datasource.sql.mssql import MSSQLAdapter
from querybridge.adapters.datasource.sql.mysql import MySQLAdapter
from querybridge.adapters.datasource.sql.postgres import PostgresAdapter
from querybridge.adapters.datasource.sql.sqlite import SQLiteAdapter

__all__ = ["MSSQLAdapter", "MySQLAdapter", "PostgresAdapter", "SQLAdapter", "SQLiteAdapter"]
