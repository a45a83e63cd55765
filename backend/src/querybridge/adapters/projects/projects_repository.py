"""Projects, activity and versions repository."""

import json
from typing import TYPE_CHECKING, Any
from uuid import UUID

from querybridge.core.projects.types import (
    Project,
    ProjectActivity,
    ProjectActivityCreate,
    ProjectVersion,
)

if TYPE_CHECKING:
    from asyncpg import Connection

PROJECT_COLUMNS = """
    id, name, slug, description, is_public, is_active, settings, metadata,
    template_id, created_by, created_at, updated_at, deleted_at
"""

ACTIVITY_COLUMNS = """
    id, project_id, user_id, action, entity_type, entity_id, entity_name,
    metadata, ip_address, user_agent, created_at
"""

VERSION_COLUMNS = """
    id, project_id, version, name, description, is_current, snapshot, created_by, created_at
"""

# Column name -> whether the value is stored as JSONB
PROJECT_UPDATE_COLUMNS = {
    "name": False,
    "description": False,
    "is_public": False,
    "is_active": False,
    "settings": True,
    "metadata": True,
    "template_id": False,
}


def _json_value(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


class ProjectsRepository:
    """Repository for projects and their append-only collections."""

    def __init__(self, conn: "Connection") -> None:
        """Initialize the repository."""
        self._conn = conn

    async def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is taken, including by deleted projects."""
        found: bool = await self._conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM projects WHERE slug = $1)",
            slug,
        )
        return found

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
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO projects
                (name, slug, description, is_public, settings, metadata, template_id, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING {PROJECT_COLUMNS}
            """,
            name,
            slug,
            description,
            is_public,
            json.dumps(settings),
            json.dumps(metadata),
            template_id,
            created_by,
        )
        return self._row_to_project(row)

    async def get_project(self, project_id: UUID, for_update: bool = False) -> Project | None:
        """Get a project that is not soft-deleted."""
        lock = " FOR UPDATE" if for_update else ""
        row = await self._conn.fetchrow(
            f"""
            SELECT {PROJECT_COLUMNS} FROM projects
            WHERE id = $1 AND deleted_at IS NULL{lock}
            """,
            project_id,
        )
        if not row:
            return None
        return self._row_to_project(row)

    async def update_project(self, project_id: UUID, changes: dict[str, Any]) -> Project | None:
        """Apply column changes to a project."""
        updates = []
        params: list[Any] = []
        for column, value in changes.items():
            if column not in PROJECT_UPDATE_COLUMNS:
                continue
            params.append(json.dumps(value) if PROJECT_UPDATE_COLUMNS[column] else value)
            updates.append(f"{column} = ${len(params)}")

        if not updates:
            return await self.get_project(project_id)

        params.append(project_id)
        row = await self._conn.fetchrow(
            f"""
            UPDATE projects SET {", ".join(updates)}, updated_at = NOW()
            WHERE id = ${len(params)} AND deleted_at IS NULL
            RETURNING {PROJECT_COLUMNS}
            """,
            *params,
        )
        if not row:
            return None
        return self._row_to_project(row)

    async def soft_delete_project(self, project_id: UUID) -> bool:
        """Mark a project deleted and inactive."""
        result = await self._conn.execute(
            """
            UPDATE projects SET deleted_at = NOW(), is_active = false, updated_at = NOW()
            WHERE id = $1 AND deleted_at IS NULL
            """,
            project_id,
        )
        return str(result).split()[-1] != "0"

    async def list_for_user(
        self, user_id: UUID, include_public: bool = False
    ) -> list[dict[str, Any]]:
        """Projects the user is an active member of, plus public ones if asked."""
        rows = await self._conn.fetch(
            """
            SELECT p.id, p.name, p.slug, p.description, p.is_public, p.created_at,
                   m.role
            FROM projects p
            LEFT JOIN project_members m
                ON m.project_id = p.id AND m.user_id = $1 AND m.is_active = true
            WHERE p.deleted_at IS NULL
              AND (m.id IS NOT NULL OR ($2 AND p.is_public))
            ORDER BY p.name
            """,
            user_id,
            include_public,
        )
        return [dict(row) for row in rows]

    async def insert_activity(self, entry: ProjectActivityCreate) -> ProjectActivity:
        """Append an activity entry."""
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO project_activities
                (project_id, user_id, action, entity_type, entity_id, entity_name,
                 metadata, ip_address, user_agent)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING {ACTIVITY_COLUMNS}
            """,
            entry.project_id,
            entry.user_id,
            entry.action.value,
            entry.entity_type.value,
            entry.entity_id,
            entry.entity_name,
            json.dumps(entry.metadata, default=str),
            entry.ip_address,
            entry.user_agent,
        )
        return self._row_to_activity(row)

    async def list_activity(
        self,
        project_id: UUID,
        limit: int = 50,
        offset: int = 0,
        action: str | None = None,
        entity_type: str | None = None,
    ) -> list[ProjectActivity]:
        """Page through a project's activity, newest first."""
        rows = await self._conn.fetch(
            f"""
            SELECT {ACTIVITY_COLUMNS} FROM project_activities
            WHERE project_id = $1
              AND ($2::text IS NULL OR action = $2)
              AND ($3::text IS NULL OR entity_type = $3)
            ORDER BY created_at DESC
            LIMIT $4 OFFSET $5
            """,
            project_id,
            action,
            entity_type,
            limit,
            offset,
        )
        return [self._row_to_activity(row) for row in rows]

    async def get_current_version(self, project_id: UUID) -> ProjectVersion | None:
        """Get the version flagged current."""
        row = await self._conn.fetchrow(
            f"""
            SELECT {VERSION_COLUMNS} FROM project_versions
            WHERE project_id = $1 AND is_current = true
            """,
            project_id,
        )
        if not row:
            return None
        return self._row_to_version(row)

    async def clear_current_version(self, project_id: UUID) -> None:
        """Unflag the current version."""
        await self._conn.execute(
            "UPDATE project_versions SET is_current = false WHERE project_id = $1 AND is_current",
            project_id,
        )

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
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO project_versions
                (project_id, version, name, description, is_current, snapshot, created_by)
            VALUES ($1, $2, $3, $4, true, $5, $6)
            RETURNING {VERSION_COLUMNS}
            """,
            project_id,
            version,
            name,
            description,
            json.dumps(snapshot, default=str),
            created_by,
        )
        return self._row_to_version(row)

    async def list_versions(self, project_id: UUID) -> list[ProjectVersion]:
        """List versions, newest first."""
        rows = await self._conn.fetch(
            f"""
            SELECT {VERSION_COLUMNS} FROM project_versions
            WHERE project_id = $1
            ORDER BY created_at DESC
            """,
            project_id,
        )
        return [self._row_to_version(row) for row in rows]

    def _row_to_project(self, row: Any) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            created_by=row["created_by"],
            description=row["description"],
            is_public=row["is_public"],
            is_active=row["is_active"],
            settings=_json_value(row["settings"], {}),
            metadata=_json_value(row["metadata"], {}),
            template_id=row["template_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    def _row_to_activity(self, row: Any) -> ProjectActivity:
        return ProjectActivity(
            id=row["id"],
            project_id=row["project_id"],
            user_id=row["user_id"],
            action=row["action"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            entity_name=row["entity_name"],
            metadata=_json_value(row["metadata"], {}),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            created_at=row["created_at"],
        )

    def _row_to_version(self, row: Any) -> ProjectVersion:
        return ProjectVersion(
            id=row["id"],
            project_id=row["project_id"],
            version=row["version"],
            is_current=row["is_current"],
            snapshot=_json_value(row["snapshot"], {}),
            created_by=row["created_by"],
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
        )
