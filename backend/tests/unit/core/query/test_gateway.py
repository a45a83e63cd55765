"""Tests for the query gateway."""

import asyncio
import sqlite3
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from querybridge.adapters.datasource import ConnectionBroker, build_default_registry
from querybridge.core.exceptions import (
    ConnectionFailedError,
    DatabaseNotFoundError,
    OperationTimeoutError,
    QueryExecutionFailedError,
    TranslationFailedError,
)
from querybridge.core.projects.types import ConnectionConfig, ProjectDatabase
from querybridge.core.query import QueryGateway
from querybridge.core.query.types import (
    NATURAL_LANGUAGE_PREFIX,
    QueryHistoryCreate,
    QueryResult,
    SchemaSnapshot,
    Translation,
)


class RecordingHistory:
    """History ledger that keeps entries in a list."""

    def __init__(self) -> None:
        self.entries: list[QueryHistoryCreate] = []

    async def record(self, entry: QueryHistoryCreate) -> None:
        self.entries.append(entry)

    async def list_for_project(
        self, project_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[Any], int]:
        rows = [e for e in self.entries if e.project_id == project_id]
        return rows[offset : offset + limit], len(rows)


@pytest.fixture
def history() -> RecordingHistory:
    """Empty history ledger."""
    return RecordingHistory()


@pytest.fixture
def handle() -> MagicMock:
    """Handle double answering ``SELECT 1``."""
    handle = MagicMock()
    handle.database_type = "postgresql"
    handle.execute = AsyncMock(
        return_value=QueryResult(
            columns=["?column?"], rows=[{"?column?": 1}], row_count=1, command="SELECT"
        )
    )
    handle.get_schema = AsyncMock(return_value=SchemaSnapshot())
    return handle


@pytest.fixture
def broker(handle: MagicMock) -> MagicMock:
    """Broker double resolving every id to itself."""
    broker = MagicMock()
    broker.resolve_database_id = AsyncMock(side_effect=lambda project, database: database)
    broker.get_connection = AsyncMock(return_value=handle)
    return broker


@pytest.fixture
def translator() -> MagicMock:
    """Translator double."""
    translator = MagicMock()
    translator.model = "test-model"
    translator.translate = AsyncMock(
        return_value=Translation(query="SELECT 1", description="One", confidence=0.9)
    )
    return translator


@pytest.fixture
def gateway(broker: MagicMock, history: RecordingHistory, translator: MagicMock) -> QueryGateway:
    """Gateway over the doubles."""
    return QueryGateway(broker, history, translator)


class TestExecute:
    """Tests for execute."""

    async def test_select_envelope(
        self, gateway: QueryGateway, history: RecordingHistory
    ) -> None:
        """A read returns its rows with timing and count."""
        project, database = uuid4(), uuid4()

        envelope = await gateway.execute(project, database, "SELECT 1", user_id=uuid4())

        assert envelope["data"] == [{"?column?": 1}]
        assert envelope["meta"]["row_count"] == 1
        assert envelope["meta"]["execution_time_ms"] >= 0
        assert len(history.entries) == 1
        assert history.entries[0].database_id == database
        assert history.entries[0].result_metadata["row_count"] == 1

    async def test_write_reports_command(
        self, gateway: QueryGateway, handle: MagicMock
    ) -> None:
        """Non-reads return the command tag and affected rows."""
        handle.execute = AsyncMock(
            return_value=QueryResult(row_count=3, command="UPDATE")
        )

        envelope = await gateway.execute(uuid4(), uuid4(), "UPDATE t SET x = $1", [5])

        assert envelope["data"] == {"command": "UPDATE", "row_count": 3}
        handle.execute.assert_awaited_once_with("UPDATE t SET x = $1", [5])

    async def test_engine_failure_is_recorded_once(
        self, gateway: QueryGateway, handle: MagicMock, history: RecordingHistory
    ) -> None:
        """A rejected statement writes one entry carrying the error."""
        handle.execute = AsyncMock(side_effect=RuntimeError('relation "nope" does not exist'))

        with pytest.raises(QueryExecutionFailedError):
            await gateway.execute(uuid4(), uuid4(), "SELECT * FROM nope")

        assert len(history.entries) == 1
        metadata = history.entries[0].result_metadata
        assert metadata["error_code"] == "QUERY_EXECUTION_FAILED"
        assert "nope" in metadata["error"]

    async def test_unknown_database_is_recorded_without_id(
        self, gateway: QueryGateway, broker: MagicMock, history: RecordingHistory
    ) -> None:
        """The requested id goes to metadata when the database is missing."""
        project, database = uuid4(), uuid4()
        broker.get_connection = AsyncMock(side_effect=DatabaseNotFoundError(project, database))

        with pytest.raises(DatabaseNotFoundError):
            await gateway.execute(project, database, "SELECT 1")

        entry = history.entries[0]
        assert entry.database_id is None
        assert entry.result_metadata["requested_database_id"] == str(database)

    async def test_unexpected_lookup_error_is_recorded(
        self, gateway: QueryGateway, broker: MagicMock, history: RecordingHistory
    ) -> None:
        """Errors outside the error hierarchy still write one entry."""
        broker.get_connection = AsyncMock(
            side_effect=ValueError("Connection config could not be decrypted")
        )

        with pytest.raises(ConnectionFailedError) as exc_info:
            await gateway.execute(uuid4(), uuid4(), "SELECT 1", [])

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert len(history.entries) == 1
        metadata = history.entries[0].result_metadata
        assert metadata["error_code"] == "CONNECTION_FAILED"
        assert "decrypted" in metadata["error"]

    async def test_slow_statement_times_out(
        self, broker: MagicMock, handle: MagicMock, history: RecordingHistory
    ) -> None:
        """A statement past the deadline is a retryable timeout, recorded once."""

        async def slow(query: str, params: list[Any]) -> QueryResult:
            await asyncio.sleep(5)
            return QueryResult()

        handle.execute = AsyncMock(side_effect=slow)
        gateway = QueryGateway(broker, history, query_timeout_seconds=0.05)

        with pytest.raises(OperationTimeoutError) as exc_info:
            await gateway.execute(uuid4(), uuid4(), "SELECT pg_sleep(5)")

        assert exc_info.value.retryable is True
        assert len(history.entries) == 1
        assert history.entries[0].result_metadata["error_code"] == "TIMEOUT"

    async def test_history_failure_does_not_fail_query(
        self, broker: MagicMock, translator: MagicMock
    ) -> None:
        """A ledger outage is logged, the result still returned."""
        history = MagicMock()
        history.record = AsyncMock(side_effect=RuntimeError("app db down"))
        gateway = QueryGateway(broker, history, translator)

        envelope = await gateway.execute(uuid4(), uuid4(), "SELECT 1")

        assert envelope["meta"]["row_count"] == 1


class TestAsk:
    """Tests for ask and translate."""

    async def test_ask_runs_translation(
        self, gateway: QueryGateway, history: RecordingHistory
    ) -> None:
        """The translated query runs flagged as AI-generated."""
        envelope = await gateway.ask(uuid4(), uuid4(), "how many?", user_id=uuid4())

        assert envelope["query"] == "SELECT 1"
        assert envelope["meta"]["confidence"] == 0.9
        entry = history.entries[0]
        assert entry.is_ai_generated is True
        assert entry.ai_model == "test-model"

    async def test_empty_translation_is_rejected(
        self,
        gateway: QueryGateway,
        translator: MagicMock,
        handle: MagicMock,
        history: RecordingHistory,
    ) -> None:
        """An empty query is a non-retryable failure recorded under the question."""
        translator.translate = AsyncMock(return_value=Translation(query="  "))

        with pytest.raises(TranslationFailedError) as exc_info:
            await gateway.ask(uuid4(), uuid4(), "delete everything?")

        assert exc_info.value.retryable is False
        handle.execute.assert_not_awaited()
        assert len(history.entries) == 1
        assert history.entries[0].query == NATURAL_LANGUAGE_PREFIX + "delete everything?"

    async def test_slow_translation_times_out(
        self,
        broker: MagicMock,
        translator: MagicMock,
        handle: MagicMock,
        history: RecordingHistory,
    ) -> None:
        """The translator is bounded too; the question is recorded."""

        async def slow(*args: Any) -> Translation:
            await asyncio.sleep(5)
            return Translation(query="SELECT 1")

        translator.translate = AsyncMock(side_effect=slow)
        gateway = QueryGateway(broker, history, translator, translate_timeout_seconds=0.05)

        with pytest.raises(OperationTimeoutError):
            await gateway.ask(uuid4(), uuid4(), "how many?")

        handle.execute.assert_not_awaited()
        assert len(history.entries) == 1
        assert history.entries[0].query == NATURAL_LANGUAGE_PREFIX + "how many?"

    async def test_unexpected_translator_error_is_recorded(
        self, gateway: QueryGateway, translator: MagicMock, history: RecordingHistory
    ) -> None:
        """A translator bug becomes a non-retryable translation failure."""
        translator.translate = AsyncMock(side_effect=KeyError("content"))

        with pytest.raises(TranslationFailedError) as exc_info:
            await gateway.ask(uuid4(), uuid4(), "how many?")

        assert exc_info.value.retryable is False
        assert len(history.entries) == 1
        assert history.entries[0].is_ai_generated is True

    async def test_unexpected_lookup_error_before_translation(
        self, gateway: QueryGateway, broker: MagicMock, history: RecordingHistory
    ) -> None:
        """Failing to reach the database is recorded under the question."""
        broker.get_connection = AsyncMock(side_effect=OSError("pool closed"))

        with pytest.raises(ConnectionFailedError):
            await gateway.ask(uuid4(), uuid4(), "how many?")

        assert len(history.entries) == 1
        assert history.entries[0].result_metadata["error_code"] == "CONNECTION_FAILED"

    async def test_ask_without_translator(
        self, broker: MagicMock, history: RecordingHistory
    ) -> None:
        """Ask fails clearly when translation is not configured."""
        gateway = QueryGateway(broker, history, None)

        with pytest.raises(TranslationFailedError):
            await gateway.ask(uuid4(), uuid4(), "how many?")

    async def test_translate_does_not_execute(
        self, gateway: QueryGateway, handle: MagicMock, history: RecordingHistory
    ) -> None:
        """Translate only returns the proposed query."""
        translation = await gateway.translate(uuid4(), uuid4(), "how many?")

        assert translation.query == "SELECT 1"
        handle.execute.assert_not_awaited()
        assert history.entries == []


class TestDescribe:
    """Tests for describe."""

    async def test_returns_snapshot(
        self, gateway: QueryGateway, broker: MagicMock, handle: MagicMock
    ) -> None:
        """The schema comes from the cached handle, without history."""
        project, database = uuid4(), uuid4()

        snapshot = await gateway.describe(project, database)

        assert snapshot == SchemaSnapshot()
        broker.get_connection.assert_awaited_once_with(project, database)
        handle.get_schema.assert_awaited_once()


class TestHistory:
    """Tests for history paging."""

    async def test_limit_is_clamped(self, gateway: QueryGateway) -> None:
        """Page size stays within 1..100."""
        project = uuid4()
        for _ in range(3):
            await gateway.execute(project, uuid4(), "SELECT 1")

        entries, total = await gateway.history(project, limit=0)

        assert total == 3
        assert len(entries) == 1


class TestAgainstSqlite:
    """End-to-end through a real broker and a sqlite file."""

    async def test_select_one_and_primary_fallback(
        self, tmp_path: Path, history: RecordingHistory
    ) -> None:
        """SELECT 1 against the primary database when no id is given."""
        path = tmp_path / "analytics.db"
        sqlite3.connect(path).close()
        project = uuid4()
        record = ProjectDatabase(
            id=uuid4(),
            project_id=project,
            name="local",
            type="sqlite",
            connection_config=ConnectionConfig(database=str(path)),
            is_primary=True,
        )
        lookup = MagicMock()
        lookup.get_database = AsyncMock(return_value=record)
        lookup.get_primary_database = AsyncMock(return_value=record)
        broker = ConnectionBroker(lookup, build_default_registry())
        gateway = QueryGateway(broker, history)

        try:
            envelope = await gateway.execute(project, None, "SELECT 1 AS one")
        finally:
            await broker.shutdown_all()

        assert envelope["data"] == [{"one": 1}]
        assert envelope["meta"]["database_id"] == str(record.id)
        assert history.entries[0].database_id == record.id
