"""Tests for the project activity decorator."""

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from querybridge.adapters.audit import audited
from querybridge.adapters.audit.decorator import get_client_ip
from querybridge.core.projects.types import ActivityAction, EntityType


def make_request(headers: dict[str, str] | None = None, user_id: UUID | None = None) -> MagicMock:
    """Request double with a project service on app state."""
    request = MagicMock()
    request.headers = headers or {"user-agent": "pytest"}
    request.client = SimpleNamespace(host="10.0.0.7")
    request.method = "PATCH"
    request.url.path = "/api/v1/projects/x/databases/y"
    request.state = SimpleNamespace(user_id=user_id)
    request.app.state.project_service.log_activity = AsyncMock()
    return request


class TestGetClientIp:
    """Tests for get_client_ip."""

    def test_prefers_forwarded_for(self) -> None:
        """The first forwarded address wins."""
        request = make_request({"x-forwarded-for": "203.0.113.9, 10.0.0.1"})

        assert get_client_ip(request) == "203.0.113.9"

    def test_falls_back_to_peer(self) -> None:
        """Without proxies the socket peer is used."""
        assert get_client_ip(make_request()) == "10.0.0.7"


class TestAudited:
    """Tests for the audited decorator."""

    async def test_records_entry_after_success(self) -> None:
        """The entry names the project, actor and result entity."""
        project_id, database_id, user_id = uuid4(), uuid4(), uuid4()
        request = make_request(user_id=user_id)

        @audited(ActivityAction.UPDATE, EntityType.DATABASE)
        async def handler(request: Any, project_id: UUID, database_id: UUID) -> dict[str, Any]:
            return {"id": str(database_id), "name": "warehouse"}

        result = await handler(request=request, project_id=project_id, database_id=database_id)

        assert result["name"] == "warehouse"
        entry = request.app.state.project_service.log_activity.call_args.args[0]
        assert entry.project_id == project_id
        assert entry.user_id == user_id
        assert entry.entity_id == database_id
        assert entry.entity_name == "warehouse"
        assert entry.ip_address == "10.0.0.7"
        assert entry.metadata["method"] == "PATCH"

    async def test_path_param_identifies_entity(self) -> None:
        """Handlers returning nothing fall back to path parameters."""
        project_id, member_user = uuid4(), uuid4()
        request = make_request()

        @audited(ActivityAction.DELETE, EntityType.MEMBER)
        async def handler(request: Any, project_id: UUID, user_id: UUID) -> None:
            return None

        await handler(request=request, project_id=project_id, user_id=member_user)

        entry = request.app.state.project_service.log_activity.call_args.args[0]
        assert entry.entity_id == member_user

    async def test_handler_failure_records_nothing(self) -> None:
        """Failed requests leave no entry."""
        request = make_request()

        @audited(ActivityAction.DELETE, EntityType.DATABASE)
        async def handler(request: Any, project_id: UUID) -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await handler(request=request, project_id=uuid4())

        request.app.state.project_service.log_activity.assert_not_awaited()

    async def test_log_failure_does_not_fail_request(self) -> None:
        """A broken activity log never fails the handler."""
        request = make_request()
        request.app.state.project_service.log_activity = AsyncMock(side_effect=OSError("down"))

        @audited(ActivityAction.CREATE, EntityType.DATABASE)
        async def handler(request: Any, project_id: UUID) -> str:
            return "ok"

        assert await handler(request=request, project_id=uuid4()) == "ok"
