"""Query execution gateway.

Routes caller-supplied or AI-translated queries through the connection
broker and records every attempt in the query history ledger.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import Any, TypeVar
from uuid import UUID

import structlog

from querybridge.core.exceptions import (
    ConnectionFailedError,
    DatabaseNotFoundError,
    OperationTimeoutError,
    QueryExecutionFailedError,
    QuerybridgeError,
    TranslationFailedError,
)
from querybridge.core.interfaces import (
    ConnectionProvider,
    DatabaseHandle,
    QueryHistoryRecorder,
    QueryTranslator,
)
from querybridge.core.query.types import (
    NATURAL_LANGUAGE_PREFIX,
    QueryHistoryCreate,
    QueryHistoryEntry,
    QueryResult,
    SchemaSnapshot,
    Translation,
    is_read_statement,
)

logger = structlog.get_logger()

T = TypeVar("T")

MAX_HISTORY_PAGE = 100


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


def _unreachable(error: Exception) -> ConnectionFailedError:
    return ConnectionFailedError(f"Could not reach database: {error}")


class QueryGateway:
    """Executes queries against registered project databases.

    Attributes:
        query_timeout_seconds: Bound on each statement and schema snapshot.
        translate_timeout_seconds: Bound on each translation call.
    """

    def __init__(
        self,
        broker: ConnectionProvider,
        history: QueryHistoryRecorder,
        translator: QueryTranslator | None = None,
        query_timeout_seconds: float = 30.0,
        translate_timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the gateway.

        Args:
            broker: Connection broker owning the handle cache.
            history: Query history ledger.
            translator: Natural-language translator, None disables ``ask``.
            query_timeout_seconds: Timeout for statements and introspection.
            translate_timeout_seconds: Timeout for translation calls.
        """
        self._broker = broker
        self._history = history
        self._translator = translator
        self.query_timeout_seconds = query_timeout_seconds
        self.translate_timeout_seconds = translate_timeout_seconds

    async def execute(
        self,
        project_id: UUID,
        database_id: UUID | None,
        query: str,
        params: list[Any] | None = None,
        user_id: UUID | None = None,
        is_ai_generated: bool = False,
        ai_model: str | None = None,
        confidence: float | None = None,
    ) -> dict[str, Any]:
        """Execute one statement and return the result envelope.

        Exactly one history entry is written per call, success or failure.

        Args:
            project_id: Project owning the target database.
            database_id: Target database, None for the project's primary.
            query: Statement text, forwarded unmodified.
            params: Values bound by the driver.
            user_id: Acting user.
            is_ai_generated: Whether the query came from translation.
            ai_model: Model that produced the query.
            confidence: Translation confidence, surfaced in ``meta``.

        Returns:
            ``{"data": ..., "meta": {"execution_time_ms", "row_count", ...}}``.

        Raises:
            DatabaseNotFoundError: Unknown database or no primary.
            ConnectionFailedError: The record could not be loaded or the handle opened.
            OperationTimeoutError: Round trip exceeded its deadline.
            QueryExecutionFailedError: The engine rejected the statement.
        """
        bound = list(params or [])
        started = time.perf_counter()
        resolved_id: UUID | None = None
        try:
            resolved_id = await self._broker.resolve_database_id(project_id, database_id)
            handle = await self._broker.get_connection(project_id, resolved_id)
            result = await self._run(handle, query, bound)
        except Exception as e:
            failure = e if isinstance(e, QuerybridgeError) else _unreachable(e)
            await self._record_failure(
                project_id=project_id,
                database_id=None if isinstance(e, DatabaseNotFoundError) else resolved_id,
                requested_database_id=database_id,
                query=query,
                params=bound,
                user_id=user_id,
                error=failure,
                elapsed_ms=_elapsed_ms(started),
                is_ai_generated=is_ai_generated,
                ai_model=ai_model,
                confidence=confidence,
            )
            if failure is e:
                raise
            raise failure from e

        elapsed = _elapsed_ms(started)
        is_read = is_read_statement(query)
        metadata: dict[str, Any] = {"row_count": result.row_count, "execution_time_ms": elapsed}
        if not is_read:
            metadata["command"] = result.command
        if confidence is not None:
            metadata["confidence"] = confidence

        await self._record(
            QueryHistoryCreate(
                project_id=project_id,
                user_id=user_id,
                database_id=resolved_id,
                query=query,
                params=bound,
                result_metadata=metadata,
                is_ai_generated=is_ai_generated,
                ai_model=ai_model,
            )
        )

        logger.info(
            "query_executed",
            project_id=str(project_id),
            database_id=str(resolved_id),
            row_count=result.row_count,
            execution_time_ms=elapsed,
            is_ai_generated=is_ai_generated,
        )

        data: Any
        if is_read:
            data = result.rows
        else:
            data = {"command": result.command, "row_count": result.row_count}

        meta: dict[str, Any] = {
            "execution_time_ms": elapsed,
            "row_count": result.row_count,
            "database_id": str(resolved_id),
        }
        if confidence is not None:
            meta["confidence"] = confidence
        return {"data": data, "meta": meta}

    async def translate(
        self,
        project_id: UUID,
        database_id: UUID | None,
        question: str,
        context: dict[str, Any] | None = None,
    ) -> Translation:
        """Translate a question into a query without executing it."""
        resolved_id = await self._broker.resolve_database_id(project_id, database_id)
        handle = await self._broker.get_connection(project_id, resolved_id)
        schema = await self.schema_snapshot(handle)
        return await self._translate(question, schema, handle.database_type, context)

    async def ask(
        self,
        project_id: UUID,
        database_id: UUID | None,
        question: str,
        user_id: UUID | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Answer a natural-language question against a project database.

        The schema snapshot and question go to the translator; the returned
        query runs through ``execute`` flagged as AI-generated. A failure
        before execution is still recorded, under the question text.
        """
        started = time.perf_counter()
        resolved_id: UUID | None = None
        handle: DatabaseHandle | None = None
        try:
            resolved_id = await self._broker.resolve_database_id(project_id, database_id)
            handle = await self._broker.get_connection(project_id, resolved_id)
            schema = await self.schema_snapshot(handle)
            translation = await self._translate(question, schema, handle.database_type, context)
            if not translation.query.strip():
                raise TranslationFailedError("Translation produced no query", retryable=False)
        except Exception as e:
            failure: QuerybridgeError
            if isinstance(e, QuerybridgeError):
                failure = e
            elif handle is None:
                failure = _unreachable(e)
            else:
                failure = TranslationFailedError(f"Translation failed: {e}", retryable=False)
            await self._record_failure(
                project_id=project_id,
                database_id=None if isinstance(e, DatabaseNotFoundError) else resolved_id,
                requested_database_id=database_id,
                query=NATURAL_LANGUAGE_PREFIX + question,
                params=[],
                user_id=user_id,
                error=failure,
                elapsed_ms=_elapsed_ms(started),
                is_ai_generated=True,
                ai_model=self._translator.model if self._translator else None,
                confidence=None,
            )
            if failure is e:
                raise
            raise failure from e

        envelope = await self.execute(
            project_id,
            resolved_id,
            translation.query,
            translation.parameters,
            user_id=user_id,
            is_ai_generated=True,
            ai_model=self._translator.model if self._translator else None,
            confidence=translation.confidence,
        )
        envelope["query"] = translation.query
        envelope["description"] = translation.description
        envelope["warnings"] = translation.warnings
        return envelope

    async def history(
        self, project_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[QueryHistoryEntry], int]:
        """Page through a project's query history, newest first."""
        limit = max(1, min(limit, MAX_HISTORY_PAGE))
        offset = max(0, offset)
        return await self._history.list_for_project(project_id, limit=limit, offset=offset)

    async def describe(self, project_id: UUID, database_id: UUID) -> SchemaSnapshot:
        """Introspect a registered database through its cached handle."""
        handle = await self._broker.get_connection(project_id, database_id)
        return await self.schema_snapshot(handle)

    async def schema_snapshot(self, handle: DatabaseHandle) -> SchemaSnapshot:
        """Introspect a handle's tables under the query timeout."""
        try:
            return await self._bounded(handle.get_schema(), "schema introspection")
        except QuerybridgeError:
            raise
        except Exception as e:
            raise QueryExecutionFailedError(
                f"Schema introspection failed: {e}", handle.database_type
            ) from e

    async def _run(self, handle: DatabaseHandle, query: str, params: list[Any]) -> QueryResult:
        try:
            return await self._bounded(handle.execute(query, params), "query")
        except QuerybridgeError:
            raise
        except Exception as e:
            raise QueryExecutionFailedError(str(e), handle.database_type) from e

    async def _translate(
        self,
        question: str,
        schema: SchemaSnapshot,
        database_type: str,
        context: dict[str, Any] | None,
    ) -> Translation:
        if self._translator is None:
            raise TranslationFailedError("Query translation is not configured", retryable=False)
        try:
            return await asyncio.wait_for(
                self._translator.translate(question, schema, database_type, context),
                timeout=self.translate_timeout_seconds,
            )
        except TimeoutError:
            raise OperationTimeoutError("translation", self.translate_timeout_seconds) from None

    async def _bounded(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.query_timeout_seconds)
        except TimeoutError:
            raise OperationTimeoutError(operation, self.query_timeout_seconds) from None

    async def _record_failure(
        self,
        *,
        project_id: UUID,
        database_id: UUID | None,
        requested_database_id: UUID | None,
        query: str,
        params: list[Any],
        user_id: UUID | None,
        error: QuerybridgeError,
        elapsed_ms: int,
        is_ai_generated: bool,
        ai_model: str | None,
        confidence: float | None,
    ) -> None:
        metadata: dict[str, Any] = {
            "error": error.message,
            "error_code": error.code.value,
            "execution_time_ms": elapsed_ms,
            "row_count": 0,
        }
        if database_id is None and requested_database_id is not None:
            metadata["requested_database_id"] = str(requested_database_id)
        if confidence is not None:
            metadata["confidence"] = confidence

        logger.warning(
            "query_failed",
            project_id=str(project_id),
            database_id=str(database_id) if database_id else None,
            error_code=error.code.value,
            execution_time_ms=elapsed_ms,
        )
        await self._record(
            QueryHistoryCreate(
                project_id=project_id,
                user_id=user_id,
                database_id=database_id,
                query=query,
                params=params,
                result_metadata=metadata,
                is_ai_generated=is_ai_generated,
                ai_model=ai_model,
            )
        )

    async def _record(self, entry: QueryHistoryCreate) -> None:
        try:
            await self._history.record(entry)
        except Exception:
            logger.exception(
                "query_history_write_failed",
                project_id=str(entry.project_id),
                database_id=str(entry.database_id) if entry.database_id else None,
            )
