"""Connection broker for external project databases.

Owns the cache of live handles keyed by ``(project_id, database_id)``.
Handles are opened on first use, validated with a ping, and reused
without re-checking until evicted or until ``shutdown_all``.
"""

from __future__ import annotations

import asyncio
import time
from uuid import UUID

import structlog

from querybridge.adapters.datasource.base import BaseAdapter
from querybridge.adapters.datasource.registry import AdapterRegistry
from querybridge.core.exceptions import (
    ConnectionFailedError,
    DatabaseNotFoundError,
    ErrorCode,
    OperationTimeoutError,
    QuerybridgeError,
)
from querybridge.core.interfaces import DatabaseLookup
from querybridge.core.projects.types import ConnectionConfig, ProjectDatabase
from querybridge.core.query.types import ConnectionTestResult

logger = structlog.get_logger()

CacheKey = tuple[UUID, UUID]


class ConnectionBroker:
    """Process-wide cache of validated database handles.

    Concurrent first requests for the same key share one in-flight build,
    so at most one connection attempt runs per key at a time.

    Attributes:
        connect_timeout_seconds: Bound on opening and pinging a handle.
    """

    def __init__(
        self,
        lookup: DatabaseLookup,
        registry: AdapterRegistry,
        connect_timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize the broker.

        Args:
            lookup: Resolves registered database records.
            registry: Engine dispatch table.
            connect_timeout_seconds: Timeout for open and ping.
        """
        self._lookup = lookup
        self._registry = registry
        self.connect_timeout_seconds = connect_timeout_seconds
        self._handles: dict[CacheKey, BaseAdapter] = {}
        self._building: dict[CacheKey, asyncio.Task[BaseAdapter]] = {}
        self._generations: dict[CacheKey, int] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def is_cached(self, project_id: UUID, database_id: UUID) -> bool:
        """Whether a live handle is cached for the key."""
        return (project_id, database_id) in self._handles

    async def get_connection(self, project_id: UUID, database_id: UUID) -> BaseAdapter:
        """Get a validated handle for a project's database.

        Raises:
            DatabaseNotFoundError: The database is unknown to the project.
            UnsupportedDatabaseTypeError: No engine for the stored type.
            ConnectionFailedError: Open or ping failed; nothing is cached.
            OperationTimeoutError: Open or ping exceeded the timeout.
        """
        key = (project_id, database_id)
        handle = self._handles.get(key)
        if handle is not None:
            return handle

        task = self._building.get(key)
        if task is None:
            task = asyncio.create_task(self._build(key))
            self._building[key] = task
        # Shielded so one caller's cancellation does not abort the shared build.
        return await asyncio.shield(task)

    async def resolve_database_id(self, project_id: UUID, database_id: UUID | None) -> UUID:
        """Return ``database_id`` or the id of the project's primary database.

        Raises:
            DatabaseNotFoundError: No id given and the project has no primary.
        """
        if database_id is not None:
            return database_id
        primary = await self._lookup.get_primary_database(project_id)
        if primary is None or not primary.is_available:
            raise DatabaseNotFoundError(project_id)
        return primary.id

    async def probe(self, project_id: UUID, database_id: UUID) -> ConnectionTestResult:
        """Test a registered database with a throwaway handle.

        Raises:
            DatabaseNotFoundError: The database is unknown to the project.
            UnsupportedDatabaseTypeError: No engine for the stored type.
        """
        record = await self._load(project_id, database_id)
        return await self.probe_config(record.type, record.connection_config)

    async def probe_config(
        self, database_type: str, config: ConnectionConfig
    ) -> ConnectionTestResult:
        """Test a connection config without registering or caching it."""
        adapter = self._registry.create(database_type, config)
        started = time.perf_counter()
        try:
            await self._open(adapter)
            version = await asyncio.wait_for(
                adapter.server_version(), timeout=self.connect_timeout_seconds
            )
        except QuerybridgeError as e:
            return ConnectionTestResult(
                success=False,
                latency_ms=int((time.perf_counter() - started) * 1000),
                message=e.message,
                error_code=e.code.value,
            )
        except Exception as e:
            return ConnectionTestResult(
                success=False,
                latency_ms=int((time.perf_counter() - started) * 1000),
                message=str(e),
                error_code=ErrorCode.CONNECTION_FAILED.value,
            )
        finally:
            await self._close_quietly(adapter, None)

        return ConnectionTestResult(
            success=True,
            latency_ms=int((time.perf_counter() - started) * 1000),
            server_version=version,
            message="Connection successful",
        )

    async def evict(self, project_id: UUID, database_id: UUID) -> None:
        """Close and forget the handle for one key, if cached.

        A build already in flight for the key discards what it opened and
        starts over from the current record.
        """
        key = (project_id, database_id)
        self._generations[key] = self._generations.get(key, 0) + 1
        handle = self._handles.pop(key, None)
        if handle is not None:
            await self._close_quietly(handle, key)
            logger.info(
                "connection_evicted",
                project_id=str(project_id),
                database_id=str(database_id),
            )

    async def shutdown_all(self) -> int:
        """Close every cached handle and clear the cache.

        A failing close is logged and does not stop the rest. Safe to call
        repeatedly. The broker can be used again afterwards.

        Returns:
            Number of handles closed cleanly.
        """
        pending = list(self._building.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        handles = list(self._handles.items())
        self._handles.clear()

        closed = 0
        for key, handle in handles:
            if await self._close_quietly(handle, key):
                closed += 1

        logger.info("connection_broker_shutdown", closed=closed, total=len(handles))
        return closed

    async def _build(self, key: CacheKey) -> BaseAdapter:
        project_id, database_id = key
        try:
            while True:
                generation = self._generations.get(key, 0)
                record = await self._load(project_id, database_id)
                adapter = self._registry.create(record.type, record.connection_config)
                await self._open(adapter)
                if self._generations.get(key, 0) == generation:
                    break
                await self._close_quietly(adapter, key)
                logger.info(
                    "connection_discarded_after_evict",
                    project_id=str(project_id),
                    database_id=str(database_id),
                )
            self._handles[key] = adapter
            logger.info(
                "connection_opened",
                project_id=str(project_id),
                database_id=str(database_id),
                database_type=record.type,
            )
            return adapter
        finally:
            if self._building.get(key) is asyncio.current_task():
                del self._building[key]

    async def _load(self, project_id: UUID, database_id: UUID) -> ProjectDatabase:
        record = await self._lookup.get_database(project_id, database_id)
        if record is None or record.project_id != project_id or not record.is_available:
            raise DatabaseNotFoundError(project_id, database_id)
        return record

    async def _open(self, adapter: BaseAdapter) -> None:
        """Connect and ping, closing the adapter on any failure."""
        try:
            await asyncio.wait_for(adapter.connect(), timeout=self.connect_timeout_seconds)
            await asyncio.wait_for(adapter.ping(), timeout=self.connect_timeout_seconds)
        except TimeoutError:
            await self._close_quietly(adapter, None)
            raise OperationTimeoutError("connection", self.connect_timeout_seconds) from None
        except QuerybridgeError:
            await self._close_quietly(adapter, None)
            raise
        except asyncio.CancelledError:
            await self._close_quietly(adapter, None)
            raise
        except Exception as e:
            await self._close_quietly(adapter, None)
            raise ConnectionFailedError(
                message=f"Connection validation failed: {e}",
                details={"database_type": adapter.database_type},
            ) from e

    async def _close_quietly(self, adapter: BaseAdapter, key: CacheKey | None) -> bool:
        try:
            await adapter.close()
            return True
        except Exception as e:
            logger.warning(
                "connection_close_failed",
                project_id=str(key[0]) if key else None,
                database_id=str(key[1]) if key else None,
                error=str(e),
            )
            return False
