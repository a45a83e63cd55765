"""Tests for query routes."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from querybridge.core.exceptions import DatabaseNotFoundError, TranslationFailedError
from querybridge.core.query import Translation
from querybridge.core.rbac import Role

Bearer = Callable[[UUID], dict[str, str]]
SeedMember = Callable[..., UUID]


@pytest.fixture
def headers(project: UUID, bearer: Bearer, seed_member: SeedMember) -> dict[str, str]:
    """Credentials of a user-role member."""
    return bearer(seed_member(project, Role.USER))


class TestExecute:
    """Tests for POST /query/execute."""

    def test_delegates_to_gateway(
        self,
        client: TestClient,
        project: UUID,
        headers: dict[str, str],
        query_gateway: MagicMock,
    ) -> None:
        """Statement, params and database id reach the gateway."""
        database = uuid4()
        query_gateway.execute = AsyncMock(
            return_value={"data": {"command": "UPDATE", "row_count": 2}, "meta": {}}
        )

        response = client.post(
            f"/api/v1/projects/{project}/query/execute",
            json={"query": "UPDATE t SET x = $1", "params": [3], "database_id": str(database)},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"command": "UPDATE", "row_count": 2}
        args = query_gateway.execute.call_args.args
        assert args == (project, database, "UPDATE t SET x = $1", [3])

    def test_unknown_database(
        self,
        client: TestClient,
        project: UUID,
        headers: dict[str, str],
        query_gateway: MagicMock,
    ) -> None:
        """Missing databases map to 404 with a stable code."""
        query_gateway.execute = AsyncMock(side_effect=DatabaseNotFoundError(project, uuid4()))

        response = client.post(
            f"/api/v1/projects/{project}/query/execute",
            json={"query": "SELECT 1"},
            headers=headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DATABASE_NOT_FOUND"

    def test_empty_query_rejected(
        self, client: TestClient, project: UUID, headers: dict[str, str]
    ) -> None:
        """An empty statement fails validation."""
        response = client.post(
            f"/api/v1/projects/{project}/query/execute", json={"query": ""}, headers=headers
        )

        assert response.status_code == 422


class TestAsk:
    """Tests for POST /query/ask and /query/translate."""

    def test_translation_failure(
        self,
        client: TestClient,
        project: UUID,
        headers: dict[str, str],
        query_gateway: MagicMock,
    ) -> None:
        """Translation problems surface as 502 with the retry hint."""
        query_gateway.ask = AsyncMock(
            side_effect=TranslationFailedError("model unavailable", retryable=True)
        )

        response = client.post(
            f"/api/v1/projects/{project}/query/ask",
            json={"question": "how many orders?"},
            headers=headers,
        )

        assert response.status_code == 502
        assert response.json()["error"]["retryable"] is True

    def test_translate_returns_proposal(
        self,
        client: TestClient,
        project: UUID,
        headers: dict[str, str],
        query_gateway: MagicMock,
    ) -> None:
        """Translate answers with the proposed query only."""
        query_gateway.translate = AsyncMock(
            return_value=Translation(query="SELECT count(*) FROM orders", confidence=0.8)
        )

        response = client.post(
            f"/api/v1/projects/{project}/query/translate",
            json={"question": "how many orders?"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["query"] == "SELECT count(*) FROM orders"


class TestHistory:
    """Tests for GET /query/history."""

    def test_page_envelope(
        self,
        client: TestClient,
        project: UUID,
        headers: dict[str, str],
        query_gateway: MagicMock,
    ) -> None:
        """History comes back with total, limit and offset."""
        query_gateway.history = AsyncMock(return_value=([], 7))

        response = client.get(
            f"/api/v1/projects/{project}/query/history?limit=5&offset=5", headers=headers
        )

        assert response.status_code == 200
        assert response.json() == {"data": [], "meta": {"total": 7, "limit": 5, "offset": 5}}

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_out_of_range(
        self, client: TestClient, project: UUID, headers: dict[str, str], limit: int
    ) -> None:
        """Page sizes outside 1..100 are rejected."""
        response = client.get(
            f"/api/v1/projects/{project}/query/history?limit={limit}", headers=headers
        )

        assert response.status_code == 422
