"""Tests for project routes."""

from collections.abc import Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

from fastapi.testclient import TestClient
from querybridge.core.exceptions import ProjectNotFoundError
from querybridge.core.projects import Project

Bearer = Callable[[UUID], dict[str, str]]


class TestCreateProject:
    """Tests for POST /projects."""

    def test_template_id_seeds_from_template(
        self, client: TestClient, bearer: Bearer, project_service: MagicMock
    ) -> None:
        """A template id routes creation through the template path."""
        caller, template = uuid4(), uuid4()
        project_service.create_from_template = AsyncMock(
            return_value=Project(
                id=uuid4(),
                name="Finance",
                slug="finance",
                created_by=caller,
                metadata={"created_from_template": True},
                template_id=template,
                created_at=datetime.now(UTC),
            )
        )
        project_service.create_project = AsyncMock()

        response = client.post(
            "/api/v1/projects",
            json={
                "name": "Finance",
                "template_id": str(template),
                "variables": {"region": "emea"},
            },
            headers=bearer(caller),
        )

        assert response.status_code == 201
        assert response.json()["template_id"] == str(template)
        args, kwargs = project_service.create_from_template.call_args
        assert args == (template,)
        assert kwargs["created_by"] == caller
        assert kwargs["variables"] == {"region": "emea"}
        project_service.create_project.assert_not_awaited()

    def test_hidden_template_is_not_found(
        self, client: TestClient, bearer: Bearer, project_service: MagicMock
    ) -> None:
        """A template the caller cannot read maps to 404."""
        template = uuid4()
        project_service.create_from_template = AsyncMock(
            side_effect=ProjectNotFoundError(template)
        )

        response = client.post(
            "/api/v1/projects",
            json={"name": "Finance", "template_id": str(template)},
            headers=bearer(uuid4()),
        )

        assert response.status_code == 404
