"""Protocol definitions for external dependencies.

The core services depend only on these protocols; adapters provide the
concrete implementations and are wired together in the API lifespan.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

if TYPE_CHECKING:
    from querybridge.core.projects.types import ConnectionConfig, ProjectDatabase
    from querybridge.core.query.types import (
        ConnectionTestResult,
        QueryHistoryCreate,
        QueryHistoryEntry,
        QueryResult,
        SchemaSnapshot,
        Translation,
    )


@runtime_checkable
class TransactionManager(Protocol):
    """Hands out connections wrapped in a transaction."""

    def transaction(self) -> AbstractAsyncContextManager[Any]:
        """Open a transaction; commit on clean exit, roll back on error."""
        ...


@runtime_checkable
class DatabaseHandle(Protocol):
    """A live, pooled client bound to one external database.

    Implementations must bind ``params`` through the driver and never
    interpolate them into the query text.
    """

    database_type: str

    async def connect(self) -> None:
        """Open the underlying client or pool."""
        ...

    async def ping(self) -> None:
        """Run a no-op round trip. Raises on failure."""
        ...

    async def execute(self, query: str, params: list[Any]) -> QueryResult:
        """Execute one statement with bound parameters."""
        ...

    async def get_schema(self) -> SchemaSnapshot:
        """Introspect tables and columns."""
        ...

    async def server_version(self) -> str | None:
        """Report the engine version, if known."""
        ...

    async def close(self) -> None:
        """Release the client or pool."""
        ...


@runtime_checkable
class ConfigCipher(Protocol):
    """Encrypts connection configs at rest."""

    def encrypt(self, config: ConnectionConfig) -> str:
        """Encrypt a config for storage."""
        ...

    def decrypt(self, token: str) -> ConnectionConfig:
        """Decrypt a stored config."""
        ...


@runtime_checkable
class DatabaseLookup(Protocol):
    """Resolves registered database records for the connection broker."""

    async def get_database(self, project_id: UUID, database_id: UUID) -> ProjectDatabase | None:
        """Get an available database belonging to the project, decrypted."""
        ...

    async def get_primary_database(self, project_id: UUID) -> ProjectDatabase | None:
        """Get the project's primary database, decrypted."""
        ...


@runtime_checkable
class ConnectionProvider(Protocol):
    """Supplies validated handles keyed by (project, database)."""

    async def get_connection(self, project_id: UUID, database_id: UUID) -> DatabaseHandle:
        """Get a cached or freshly validated handle."""
        ...

    async def resolve_database_id(self, project_id: UUID, database_id: UUID | None) -> UUID:
        """Return ``database_id`` or the project's primary database id."""
        ...

    async def probe(self, project_id: UUID, database_id: UUID) -> ConnectionTestResult:
        """Test connectivity without caching."""
        ...

    async def evict(self, project_id: UUID, database_id: UUID) -> None:
        """Close and forget one cached handle."""
        ...


@runtime_checkable
class QueryTranslator(Protocol):
    """Black-box natural language to query translation."""

    model: str

    async def translate(
        self,
        question: str,
        schema: SchemaSnapshot,
        database_type: str,
        context: dict[str, Any] | None = None,
    ) -> Translation:
        """Translate a question into a query for the given engine."""
        ...


@runtime_checkable
class QueryHistoryRecorder(Protocol):
    """Append-only query history ledger."""

    async def record(self, entry: QueryHistoryCreate) -> None:
        """Append one entry."""
        ...

    async def list_for_project(
        self, project_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[QueryHistoryEntry], int]:
        """Page through a project's history, newest first, with a total."""
        ...


@runtime_checkable
class EmailSender(Protocol):
    """Delivers transactional email."""

    def send(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> bool:
        """Send synchronously. Returns True when delivered."""
        ...
