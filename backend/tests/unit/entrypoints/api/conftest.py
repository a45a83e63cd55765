"""Fixtures for API tests: an app over in-memory services."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from querybridge.core.auth import create_access_token
from querybridge.core.rbac import MembershipService, ProjectMember, Role, RoleGrant
from querybridge.entrypoints.api.errors import register_exception_handlers
from querybridge.entrypoints.api.routes import api_router

JWT_SECRET = "api-test-secret"  # pragma: allowlist secret


@pytest.fixture
def jwt_secret() -> str:
    """Signing key the app verifies bearer tokens with."""
    return JWT_SECRET


@pytest.fixture
def bearer() -> Callable[[UUID], dict[str, str]]:
    """Build an Authorization header for a user."""

    def build(user_id: UUID) -> dict[str, str]:
        token = create_access_token(str(user_id), "member@example.com", secret_key=JWT_SECRET)
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture
def seed_member(membership_store: Any) -> Callable[..., UUID]:
    """Put an active, joined member straight into the store."""

    def seed(project_id: UUID, role: Role, permissions: list[str] | None = None) -> UUID:
        user_id: UUID = membership_store.add_user()
        now = datetime.now(UTC)
        member = ProjectMember(
            id=uuid4(),
            project_id=project_id,
            user_id=user_id,
            grant=RoleGrant.build(role, permissions),
            is_active=True,
            invited_by=None,
            invited_at=now,
            joined_at=now,
            last_accessed_at=None,
            created_at=now,
        )
        membership_store.members[member.id] = member
        return user_id

    return seed


@pytest.fixture
def project_service() -> MagicMock:
    """Project service double that accepts activity entries."""
    service = MagicMock()
    service.log_activity = AsyncMock()
    return service


@pytest.fixture
def query_gateway() -> MagicMock:
    """Query gateway double."""
    return MagicMock()


@pytest.fixture
def api_keys() -> MagicMock:
    """API key repository double."""
    repo = MagicMock()
    repo.get_by_hash = AsyncMock(return_value=None)
    repo.touch_last_used = AsyncMock()
    return repo


@pytest.fixture
def api_app(
    tx: Any,
    membership_repo: Any,
    project_service: MagicMock,
    query_gateway: MagicMock,
    api_keys: MagicMock,
) -> FastAPI:
    """The API router mounted on an app whose state holds test services."""
    app = FastAPI(redirect_slashes=False)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    app.state.settings = SimpleNamespace(jwt_secret_key=JWT_SECRET)
    app.state.membership_service = MembershipService(tx, lambda conn: membership_repo)
    app.state.project_service = project_service
    app.state.query_gateway = query_gateway
    app.state.api_keys = api_keys
    return app


@pytest.fixture
def client(api_app: FastAPI) -> Iterator[TestClient]:
    """Test client sharing one event loop across requests."""
    with TestClient(api_app) as client:
        yield client


@pytest.fixture
def project(membership_store: Any) -> UUID:
    """An existing project."""
    project_id: UUID = membership_store.add_project()
    return project_id
