"""Project and database registry repository protocols."""

from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from querybridge.core.projects.types import (
    Project,
    ProjectActivity,
    ProjectActivityCreate,
    ProjectVersion,
)


@runtime_checkable
class ProjectRepository(Protocol):
    """Protocol for project, activity and version persistence."""

    async def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is taken, including by deleted projects."""
        ...

    async def insert_project(
        self,
        name: str,
        slug: str,
        created_by: UUID | None,
        description: str | None,
        is_public: bool,
        settings: dict[str, Any],
        metadata: dict[str, Any],
        template_id: UUID | None,
    ) -> Project:
        """Insert a project row."""
        ...

    async def get_project(self, project_id: UUID, for_update: bool = False) -> Project | None:
        """Get a project that is not soft-deleted."""
        ...

    async def update_project(self, project_id: UUID, changes: dict[str, Any]) -> Project | None:
        """Apply column changes to a project."""
        ...

    async def soft_delete_project(self, project_id: UUID) -> bool:
        """Mark a project deleted and inactive."""
        ...

    async def list_for_user(
        self, user_id: UUID, include_public: bool = False
    ) -> list[dict[str, Any]]:
        """Projects the user is an active member of, plus public ones if asked."""
        ...

    async def insert_activity(self, entry: ProjectActivityCreate) -> ProjectActivity:
        """Append an activity entry."""
        ...

    async def list_activity(
        self,
        project_id: UUID,
        limit: int = 50,
        offset: int = 0,
        action: str | None = None,
        entity_type: str | None = None,
    ) -> list[ProjectActivity]:
        """Page through a project's activity, newest first."""
        ...

    async def get_current_version(self, project_id: UUID) -> ProjectVersion | None:
        """Get the version flagged current."""
        ...

    async def clear_current_version(self, project_id: UUID) -> None:
        """Unflag the current version."""
        ...

    async def insert_version(
        self,
        project_id: UUID,
        version: str,
        snapshot: dict[str, Any],
        created_by: UUID | None,
        name: str | None,
        description: str | None,
    ) -> ProjectVersion:
        """Insert a version flagged current."""
        ...

    async def list_versions(self, project_id: UUID) -> list[ProjectVersion]:
        """List versions, newest first."""
        ...


@runtime_checkable
class DatabaseRepository(Protocol):
    """Protocol for registered database persistence.

    Connection configs cross this boundary encrypted.
    """

    async def lock_project(self, project_id: UUID) -> bool:
        """Lock the project row. Returns False if the project is missing."""
        ...

    async def insert_database(
        self,
        project_id: UUID,
        name: str,
        database_type: str,
        encrypted_config: str,
        is_primary: bool,
        created_by: UUID | None,
        description: str | None,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        """Insert a database row."""
        ...

    async def get_database(self, project_id: UUID, database_id: UUID) -> dict[str, Any] | None:
        """Get an active, non-deleted row scoped to the project."""
        ...

    async def get_primary(self, project_id: UUID) -> dict[str, Any] | None:
        """Get the project's primary row."""
        ...

    async def list_databases(self, project_id: UUID) -> list[dict[str, Any]]:
        """List active, non-deleted rows, primary first."""
        ...

    async def clear_primary(self, project_id: UUID) -> None:
        """Unflag every primary row of the project."""
        ...

    async def set_primary(self, project_id: UUID, database_id: UUID) -> bool:
        """Flag one row primary."""
        ...

    async def update_database(
        self, project_id: UUID, database_id: UUID, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Apply column changes."""
        ...

    async def soft_delete_database(self, project_id: UUID, database_id: UUID) -> bool:
        """Deactivate, unflag primary and stamp deleted_at."""
        ...
