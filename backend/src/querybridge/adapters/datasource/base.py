"""Base adapter interface for external project databases.

Every supported engine implements this interface so the connection broker
and the query gateway can treat handles uniformly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Self

from querybridge.core.projects.types import DatabaseType
from querybridge.core.query.types import QueryResult, SchemaSnapshot


class BaseAdapter(ABC):
    """Abstract base class for database handles.

    Attributes:
        config: Driver configuration produced by the engine's config builder.
    """

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize the adapter with driver configuration.

        Args:
            config: Configuration dictionary specific to the engine.
        """
        self._config = config
        self._connected = False

    @property
    @abstractmethod
    def source_type(self) -> DatabaseType:
        """Engine this adapter talks to."""
        ...

    @property
    def database_type(self) -> str:
        """Engine name as stored on the database record."""
        return self.source_type.value

    @abstractmethod
    async def connect(self) -> None:
        """Open the client or pool.

        Raises:
            ConnectionFailedError: If the driver cannot connect.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the client or pool. Safe to call more than once."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Run a lightweight no-op round trip. Raises on failure."""
        ...

    @abstractmethod
    async def execute(self, query: str, params: list[Any]) -> QueryResult:
        """Execute one statement with driver-bound parameters."""
        ...

    @abstractmethod
    async def get_schema(self) -> SchemaSnapshot:
        """Introspect tables and columns."""
        ...

    async def server_version(self) -> str | None:
        """Report the engine version, if the adapter knows how."""
        return None

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def is_connected(self) -> bool:
        """Check if adapter is currently connected."""
        return self._connected
