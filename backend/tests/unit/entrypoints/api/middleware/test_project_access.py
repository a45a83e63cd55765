"""Tests for project-scoped authorization."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from querybridge.core.auth import create_access_token
from querybridge.core.auth.tokens import hash_token
from querybridge.core.rbac import Permission, Role, RoleGrant
from querybridge.entrypoints.api.middleware import ApiKeyContext, ProjectAccess

API_KEY = "qb_test-key"  # pragma: allowlist secret

Bearer = Callable[[UUID], dict[str, str]]
SeedMember = Callable[..., UUID]


def execute_url(project_id: UUID) -> str:
    """The query execution endpoint of a project."""
    return f"/api/v1/projects/{project_id}/query/execute"


def install_key(
    api_keys: MagicMock,
    project_id: UUID,
    user_id: UUID,
    permissions: list[str] | None = None,
    expires_at: datetime | None = None,
) -> None:
    """Make API_KEY resolve to a key of the given project and creator."""
    record = {
        "id": uuid4(),
        "project_id": project_id,
        "user_id": user_id,
        "permissions": permissions or [],
        "expires_at": expires_at,
    }
    api_keys.get_by_hash = AsyncMock(
        side_effect=lambda key_hash: record if key_hash == hash_token(API_KEY) else None
    )


@pytest.fixture
def gateway_ok(query_gateway: MagicMock) -> MagicMock:
    """Gateway answering every statement with one row."""
    query_gateway.execute = AsyncMock(
        return_value={"data": [{"one": 1}], "meta": {"row_count": 1, "execution_time_ms": 1}}
    )
    return query_gateway


class TestBearerAuthentication:
    """Tests for JWT callers."""

    def test_missing_credentials(self, client: TestClient, project: UUID) -> None:
        """No token, no access."""
        response = client.post(execute_url(project), json={"query": "SELECT 1"})

        assert response.status_code == 401

    def test_expired_token_is_structured(
        self, client: TestClient, project: UUID, jwt_secret: str
    ) -> None:
        """Token errors use the error envelope."""
        token = create_access_token(
            str(uuid4()), "a@b.c", secret_key=jwt_secret, expires_minutes=-5
        )

        response = client.post(
            execute_url(project),
            json={"query": "SELECT 1"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "TOKEN_EXPIRED"

    def test_non_member_is_forbidden(
        self, client: TestClient, project: UUID, bearer: Bearer
    ) -> None:
        """Authenticated users outside the project get 403."""
        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers=bearer(uuid4())
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Not a member of this project"

    def test_viewer_cannot_execute(
        self, client: TestClient, project: UUID, bearer: Bearer, seed_member: SeedMember
    ) -> None:
        """Query execution needs at least the user role."""
        viewer = seed_member(project, Role.VIEWER)

        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers=bearer(viewer)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "'user' access required"

    def test_user_executes_and_access_is_recorded(
        self,
        client: TestClient,
        project: UUID,
        bearer: Bearer,
        seed_member: SeedMember,
        membership_store: Any,
        gateway_ok: MagicMock,
    ) -> None:
        """Authorized calls reach the gateway and bump last access."""
        user = seed_member(project, Role.USER)

        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers=bearer(user)
        )

        assert response.status_code == 200
        assert response.json()["data"] == [{"one": 1}]
        assert gateway_ok.execute.call_args.kwargs["user_id"] == user
        member = next(m for m in membership_store.members.values() if m.user_id == user)
        assert member.last_accessed_at is not None


class TestApiKeyAuthentication:
    """Tests for API key callers."""

    def test_key_acts_for_its_creator(
        self,
        client: TestClient,
        project: UUID,
        seed_member: SeedMember,
        api_keys: MagicMock,
        gateway_ok: MagicMock,
    ) -> None:
        """A key without its own list carries the creator's role."""
        creator = seed_member(project, Role.EDITOR)
        install_key(api_keys, project, creator)

        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers={"X-API-Key": API_KEY}
        )

        assert response.status_code == 200
        api_keys.touch_last_used.assert_awaited_once()
        assert gateway_ok.execute.call_args.kwargs["user_id"] == creator

    def test_key_of_other_project(
        self,
        client: TestClient,
        project: UUID,
        seed_member: SeedMember,
        api_keys: MagicMock,
    ) -> None:
        """Keys are bound to one project."""
        creator = seed_member(project, Role.ADMIN)
        install_key(api_keys, uuid4(), creator)

        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers={"X-API-Key": API_KEY}
        )

        assert response.status_code == 403

    def test_expired_key(
        self,
        client: TestClient,
        project: UUID,
        seed_member: SeedMember,
        api_keys: MagicMock,
    ) -> None:
        """Expired keys are rejected."""
        creator = seed_member(project, Role.ADMIN)
        install_key(
            api_keys, project, creator, expires_at=datetime.now(UTC) - timedelta(days=1)
        )

        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers={"X-API-Key": API_KEY}
        )

        assert response.status_code == 401

    def test_unknown_key(self, client: TestClient, project: UUID) -> None:
        """Unknown keys are rejected."""
        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers={"X-API-Key": "qb_nope"}
        )

        assert response.status_code == 401

    def test_narrow_key_cannot_execute(
        self,
        client: TestClient,
        project: UUID,
        seed_member: SeedMember,
        api_keys: MagicMock,
    ) -> None:
        """A read-only key of an editor lacks the user role's permissions."""
        creator = seed_member(project, Role.EDITOR)
        install_key(api_keys, project, creator, permissions=["query:read"])

        response = client.post(
            execute_url(project), json={"query": "SELECT 1"}, headers={"X-API-Key": API_KEY}
        )

        assert response.status_code == 403


class TestProjectAccessGrant:
    """Tests for the acting grant of an access context."""

    def test_key_permissions_are_bounded_by_creator(self) -> None:
        """A key never holds more than its creator."""
        project = uuid4()
        member = MagicMock(grant=RoleGrant.build(Role.VIEWER))
        key = ApiKeyContext(
            key_id=uuid4(),
            project_id=project,
            user_id=uuid4(),
            permissions=["query:read", "member:add"],
        )

        access = ProjectAccess(project_id=project, user_id=key.user_id, member=member, api_key=key)

        assert access.grant.role is Role.CUSTOM
        assert access.grant.allows(Permission.QUERY_READ)
        assert not access.grant.allows(Permission.MEMBER_ADD)

    def test_bearer_caller_uses_member_grant(self) -> None:
        """Without a key the member's own grant applies."""
        grant = RoleGrant.build(Role.EDITOR)
        member = MagicMock(grant=grant)

        access = ProjectAccess(project_id=uuid4(), user_id=uuid4(), member=member)

        assert access.grant is grant
