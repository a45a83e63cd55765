"""Registry of external databases attached to projects."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import UUID

import structlog

from querybridge.core.exceptions import (
    DatabaseNotFoundError,
    ProjectNotFoundError,
    UnsupportedDatabaseTypeError,
)
from querybridge.core.interfaces import ConfigCipher, ConnectionProvider, TransactionManager
from querybridge.core.projects.repository import DatabaseRepository
from querybridge.core.projects.types import ConnectionConfig, DatabaseType, ProjectDatabase
from querybridge.core.query.types import ConnectionTestResult

logger = structlog.get_logger()

ConfigValidator = Callable[[DatabaseType, ConnectionConfig], Any]


def row_to_database(row: dict[str, Any], cipher: ConfigCipher) -> ProjectDatabase:
    """Convert a stored row into a decrypted ProjectDatabase."""
    return ProjectDatabase(
        id=row["id"],
        project_id=row["project_id"],
        name=row["name"],
        type=row["type"],
        connection_config=cipher.decrypt(row["connection_config_encrypted"]),
        is_primary=row["is_primary"],
        is_active=row["is_active"],
        description=row.get("description"),
        metadata=row.get("metadata") or {},
        created_by=row.get("created_by"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
        deleted_at=row.get("deleted_at"),
    )


def parse_database_type(value: str) -> DatabaseType:
    """Parse a database type, rejecting anything outside the enum."""
    try:
        return DatabaseType(value)
    except ValueError:
        raise UnsupportedDatabaseTypeError(value) from None


class DatabaseRegistryService:
    """Registers, updates and removes project databases.

    The primary flag is changed inside one transaction that locks the
    project row, clears every sibling and then flags the target, so
    readers never observe zero or two primaries. Config changes and
    removals evict the broker's cached handle for that database.
    """

    def __init__(
        self,
        db: TransactionManager,
        repository_factory: Callable[[Any], DatabaseRepository],
        cipher: ConfigCipher,
        broker: ConnectionProvider,
        config_validator: ConfigValidator,
    ) -> None:
        """Initialize the service.

        Args:
            db: Source of transactional connections.
            repository_factory: Builds a repository on a connection.
            cipher: Encrypts connection configs at rest.
            broker: Connection broker whose cache is kept consistent.
            config_validator: Builds driver config, raising on bad input.
        """
        self._db = db
        self._repository_factory = repository_factory
        self._cipher = cipher
        self._broker = broker
        self._config_validator = config_validator

    async def register_database(
        self,
        project_id: UUID,
        name: str,
        database_type: str,
        config: ConnectionConfig,
        created_by: UUID | None,
        is_primary: bool = False,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ProjectDatabase:
        """Register a database, optionally as the new primary.

        Raises:
            UnsupportedDatabaseTypeError: Unknown type.
            InvalidConnectionConfigError: Config lacks required fields.
            ProjectNotFoundError: Project missing.
        """
        kind = parse_database_type(database_type)
        self._config_validator(kind, config)
        encrypted = self._cipher.encrypt(config)

        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            if not await repo.lock_project(project_id):
                raise ProjectNotFoundError(project_id)
            if is_primary:
                await repo.clear_primary(project_id)
            row = await repo.insert_database(
                project_id=project_id,
                name=name,
                database_type=kind.value,
                encrypted_config=encrypted,
                is_primary=is_primary,
                created_by=created_by,
                description=description,
                metadata=metadata or {},
            )

        logger.info(
            "database_registered",
            project_id=str(project_id),
            database_id=str(row["id"]),
            database_type=kind.value,
            is_primary=is_primary,
        )
        return row_to_database(row, self._cipher)

    async def list_databases(self, project_id: UUID) -> list[ProjectDatabase]:
        """List a project's active databases, primary first."""
        async with self._db.transaction() as conn:
            rows = await self._repository_factory(conn).list_databases(project_id)
        return [row_to_database(row, self._cipher) for row in rows]

    async def get_database(self, project_id: UUID, database_id: UUID) -> ProjectDatabase:
        """Get a database of the project.

        Raises:
            DatabaseNotFoundError: Unknown to this project.
        """
        async with self._db.transaction() as conn:
            row = await self._repository_factory(conn).get_database(project_id, database_id)
        if row is None:
            raise DatabaseNotFoundError(project_id, database_id)
        return row_to_database(row, self._cipher)

    async def get_primary_database(self, project_id: UUID) -> ProjectDatabase | None:
        """Get the project's primary database, if any."""
        async with self._db.transaction() as conn:
            row = await self._repository_factory(conn).get_primary(project_id)
        return row_to_database(row, self._cipher) if row else None

    async def set_primary(self, project_id: UUID, database_id: UUID) -> ProjectDatabase:
        """Make one database the project's primary."""
        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            if not await repo.lock_project(project_id):
                raise ProjectNotFoundError(project_id)
            if await repo.get_database(project_id, database_id) is None:
                raise DatabaseNotFoundError(project_id, database_id)
            await repo.clear_primary(project_id)
            await repo.set_primary(project_id, database_id)
            row = await repo.get_database(project_id, database_id)

        logger.info(
            "database_primary_set", project_id=str(project_id), database_id=str(database_id)
        )
        return row_to_database(row, self._cipher)  # type: ignore[arg-type]

    async def update_database(
        self,
        project_id: UUID,
        database_id: UUID,
        name: str | None = None,
        description: str | None = None,
        config: ConnectionConfig | None = None,
        metadata: dict[str, Any] | None = None,
        is_primary: bool | None = None,
    ) -> ProjectDatabase:
        """Update a database's fields, re-validating a changed config."""
        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if metadata is not None:
            changes["metadata"] = metadata

        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            if not await repo.lock_project(project_id):
                raise ProjectNotFoundError(project_id)
            current = await repo.get_database(project_id, database_id)
            if current is None:
                raise DatabaseNotFoundError(project_id, database_id)
            if config is not None:
                self._config_validator(parse_database_type(current["type"]), config)
                changes["connection_config_encrypted"] = self._cipher.encrypt(config)
            if is_primary is True:
                await repo.clear_primary(project_id)
                changes["is_primary"] = True
            elif is_primary is False:
                changes["is_primary"] = False

            row = current
            if changes:
                row = await repo.update_database(project_id, database_id, changes) or current

        if config is not None:
            await self._broker.evict(project_id, database_id)
        logger.info(
            "database_updated",
            project_id=str(project_id),
            database_id=str(database_id),
            fields=sorted(changes),
        )
        return row_to_database(row, self._cipher)

    async def remove_database(self, project_id: UUID, database_id: UUID) -> None:
        """Soft-delete a database and drop its cached handle."""
        async with self._db.transaction() as conn:
            removed = await self._repository_factory(conn).soft_delete_database(
                project_id, database_id
            )
        if not removed:
            raise DatabaseNotFoundError(project_id, database_id)
        await self._broker.evict(project_id, database_id)
        logger.info("database_removed", project_id=str(project_id), database_id=str(database_id))

    async def test_connection(self, project_id: UUID, database_id: UUID) -> ConnectionTestResult:
        """Probe a registered database without caching a handle."""
        return await self._broker.probe(project_id, database_id)
