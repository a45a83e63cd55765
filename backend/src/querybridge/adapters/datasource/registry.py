"""Adapter registry mapping database types to engine adapters.

Each ``DatabaseType`` has one entry: the adapter class, a small function
building the driver configuration from the stored connection config, and
the engine's default port. Adding an engine means adding an entry here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote_plus

from querybridge.adapters.datasource.base import BaseAdapter
from querybridge.adapters.datasource.document.mongodb import MongoDBAdapter
from querybridge.adapters.datasource.sql.mssql import MSSQLAdapter
from querybridge.adapters.datasource.sql.mysql import MySQLAdapter
from querybridge.adapters.datasource.sql.postgres import PostgresAdapter
from querybridge.adapters.datasource.sql.sqlite import SQLiteAdapter
from querybridge.core.exceptions import (
    InvalidConnectionConfigError,
    UnsupportedDatabaseTypeError,
)
from querybridge.core.projects.types import ConnectionConfig, DatabaseType

MAX_POOL_SIZE = 5

ConfigBuilder = Callable[[ConnectionConfig, int | None], dict[str, Any]]


@dataclass(frozen=True)
class EngineSpec:
    """How to reach one database engine."""

    adapter_class: type[BaseAdapter]
    build_config: ConfigBuilder
    default_port: int | None
    network: bool = True


def _password(config: ConnectionConfig) -> str | None:
    return config.password.get_secret_value() if config.password else None


def _require_network_fields(config: ConnectionConfig) -> None:
    missing = [name for name in ("host", "username") if not getattr(config, name)]
    if missing:
        raise InvalidConnectionConfigError("Connection config is incomplete", missing=missing)


def build_postgres_config(config: ConnectionConfig, default_port: int | None) -> dict[str, Any]:
    """asyncpg pool arguments."""
    _require_network_fields(config)
    return {
        "host": config.host,
        "port": config.port or default_port,
        "database": config.database,
        "user": config.username,
        "password": _password(config),
        "ssl": "require" if config.ssl else None,
        "min_size": 1,
        "max_size": MAX_POOL_SIZE,
        "command_timeout": config.options.get("command_timeout"),
    }


def build_mysql_config(config: ConnectionConfig, default_port: int | None) -> dict[str, Any]:
    """aiomysql pool arguments."""
    _require_network_fields(config)
    return {
        "host": config.host,
        "port": config.port or default_port,
        "db": config.database,
        "user": config.username,
        "password": _password(config),
        "ssl": config.ssl,
        "minsize": 1,
        "maxsize": MAX_POOL_SIZE,
    }


def build_mongodb_config(config: ConnectionConfig, default_port: int | None) -> dict[str, Any]:
    """motor client arguments with a credentialed URL."""
    if not config.host:
        raise InvalidConnectionConfigError("Connection config is incomplete", missing=["host"])
    auth = ""
    if config.username:
        auth = quote_plus(config.username)
        if config.password:
            auth += ":" + quote_plus(_password(config) or "")
        auth += "@"
    query = "authSource=" + quote_plus(config.options.get("auth_source", "admin"))
    if config.ssl:
        query += "&tls=true"
    port = config.port or default_port
    return {
        "url": f"mongodb://{auth}{config.host}:{port}/{config.database}?{query}",
        "database": config.database,
        "max_pool_size": MAX_POOL_SIZE,
    }


def build_sqlite_config(config: ConnectionConfig, default_port: int | None) -> dict[str, Any]:
    """sqlite3 arguments. ``database`` is the file path."""
    return {
        "path": config.database,
        "read_only": bool(config.options.get("read_only", False)),
    }


def build_mssql_config(config: ConnectionConfig, default_port: int | None) -> dict[str, Any]:
    """aioodbc pool arguments."""
    _require_network_fields(config)
    port = config.port or default_port
    driver = config.options.get("driver", "ODBC Driver 18 for SQL Server")
    dsn = (
        f"DRIVER={{{driver}}};SERVER={config.host},{port};DATABASE={config.database};"
        f"UID={config.username};PWD={_password(config) or ''};"
        f"Encrypt={'yes' if config.ssl else 'no'};TrustServerCertificate=yes"
    )
    return {
        "dsn": dsn,
        "host": config.host,
        "port": port,
        "minsize": 1,
        "maxsize": MAX_POOL_SIZE,
    }


class AdapterRegistry:
    """Registry of engine specs keyed by database type.

    Instances are owned by whoever builds them; use
    ``build_default_registry`` for the standard engine table.
    """

    def __init__(self) -> None:
        """Create an empty registry."""
        self._engines: dict[DatabaseType, EngineSpec] = {}

    def register(self, database_type: DatabaseType, spec: EngineSpec) -> None:
        """Register an engine for a database type."""
        self._engines[database_type] = spec

    def get_spec(self, database_type: DatabaseType | str) -> EngineSpec:
        """Look up an engine.

        Raises:
            UnsupportedDatabaseTypeError: If the type is unknown or unregistered.
        """
        raw = database_type.value if isinstance(database_type, DatabaseType) else database_type
        try:
            key = DatabaseType(raw)
        except ValueError:
            raise UnsupportedDatabaseTypeError(str(raw)) from None
        spec = self._engines.get(key)
        if spec is None:
            raise UnsupportedDatabaseTypeError(key.value)
        return spec

    def build_config(
        self, database_type: DatabaseType | str, config: ConnectionConfig
    ) -> dict[str, Any]:
        """Translate a stored connection config into driver arguments.

        Runs before any network attempt, so unknown types and incomplete
        configs fail fast.
        """
        spec = self.get_spec(database_type)
        return spec.build_config(config, spec.default_port)

    def create(self, database_type: DatabaseType | str, config: ConnectionConfig) -> BaseAdapter:
        """Build an unconnected adapter for a stored connection config."""
        spec = self.get_spec(database_type)
        return spec.adapter_class(spec.build_config(config, spec.default_port))

    def list_types(self) -> list[dict[str, Any]]:
        """Describe registered engines."""
        return [
            {"type": key.value, "default_port": spec.default_port}
            for key, spec in self._engines.items()
        ]


def build_default_registry() -> AdapterRegistry:
    """Registry with every supported engine."""
    registry = AdapterRegistry()
    registry.register(
        DatabaseType.POSTGRESQL, EngineSpec(PostgresAdapter, build_postgres_config, 5432)
    )
    registry.register(DatabaseType.MYSQL, EngineSpec(MySQLAdapter, build_mysql_config, 3306))
    registry.register(
        DatabaseType.MONGODB, EngineSpec(MongoDBAdapter, build_mongodb_config, 27017)
    )
    registry.register(
        DatabaseType.SQLITE,
        EngineSpec(SQLiteAdapter, build_sqlite_config, None, network=False),
    )
    registry.register(DatabaseType.MSSQL, EngineSpec(MSSQLAdapter, build_mssql_config, 1433))
    return registry
