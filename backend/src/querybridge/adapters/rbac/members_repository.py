"""Project members repository."""

import json
from typing import TYPE_CHECKING, Any
from uuid import UUID

from querybridge.core.rbac.types import ProjectMember, Role, RoleGrant

if TYPE_CHECKING:
    from asyncpg import Connection

MEMBER_COLUMNS = """
    m.id, m.project_id, m.user_id, m.role, m.permissions, m.is_active,
    m.invited_by, m.invited_at, m.joined_at, m.last_accessed_at,
    m.metadata, m.created_at, m.updated_at
"""

MEMBER_SELECT = f"""
    SELECT {MEMBER_COLUMNS},
           u.email AS user_email,
           NULLIF(TRIM(CONCAT_WS(' ', u.first_name, u.last_name)), '') AS user_name
    FROM project_members m
    JOIN users u ON u.id = m.user_id
"""


def _json_value(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


class MembersRepository:
    """Repository for project membership rows.

    Bound to a single connection; callers open the transaction.
    """

    def __init__(self, conn: "Connection") -> None:
        """Initialize the repository."""
        self._conn = conn

    async def lock_project(self, project_id: UUID) -> bool:
        """Lock the project row for the rest of the transaction."""
        row = await self._conn.fetchrow(
            "SELECT id FROM projects WHERE id = $1 AND deleted_at IS NULL FOR UPDATE",
            project_id,
        )
        return row is not None

    async def user_exists(self, user_id: UUID) -> bool:
        """Check whether a user exists."""
        found: bool = await self._conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)",
            user_id,
        )
        return found

    async def get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember | None:
        """Get the membership row regardless of active state."""
        row = await self._conn.fetchrow(
            f"{MEMBER_SELECT} WHERE m.project_id = $1 AND m.user_id = $2",
            project_id,
            user_id,
        )
        if not row:
            return None
        return self._row_to_member(row)

    async def count_active_admins(self, project_id: UUID) -> int:
        """Count active admins."""
        count: int = await self._conn.fetchval(
            """
            SELECT COUNT(*) FROM project_members
            WHERE project_id = $1 AND is_active = true AND role = 'admin'
            """,
            project_id,
        )
        return count

    async def insert_member(
        self,
        project_id: UUID,
        user_id: UUID,
        grant: RoleGrant,
        invited_by: UUID | None,
        joined: bool = False,
    ) -> ProjectMember:
        """Insert a new membership row."""
        row = await self._conn.fetchrow(
            """
            INSERT INTO project_members
                (project_id, user_id, role, permissions, is_active,
                 invited_by, invited_at, joined_at)
            VALUES ($1, $2, $3, $4, true, $5, NOW(), CASE WHEN $6 THEN NOW() END)
            RETURNING id
            """,
            project_id,
            user_id,
            grant.role.value,
            json.dumps(grant.stored_permissions()),
            invited_by,
            joined,
        )
        return await self._require(row["id"])

    async def reactivate_member(
        self, member_id: UUID, grant: RoleGrant, invited_by: UUID | None
    ) -> ProjectMember:
        """Reactivate a removed row with a fresh invitation."""
        await self._conn.execute(
            """
            UPDATE project_members
            SET is_active = true, role = $2, permissions = $3,
                invited_by = $4, invited_at = NOW(),
                joined_at = NULL, last_accessed_at = NULL, updated_at = NOW()
            WHERE id = $1
            """,
            member_id,
            grant.role.value,
            json.dumps(grant.stored_permissions()),
            invited_by,
        )
        return await self._require(member_id)

    async def deactivate_member(self, member_id: UUID) -> None:
        """Soft-remove a membership row."""
        await self._conn.execute(
            "UPDATE project_members SET is_active = false, updated_at = NOW() WHERE id = $1",
            member_id,
        )

    async def update_grant(self, member_id: UUID, grant: RoleGrant) -> ProjectMember:
        """Replace role and stored permissions."""
        await self._conn.execute(
            """
            UPDATE project_members
            SET role = $2, permissions = $3, updated_at = NOW()
            WHERE id = $1
            """,
            member_id,
            grant.role.value,
            json.dumps(grant.stored_permissions()),
        )
        return await self._require(member_id)

    async def touch_access(self, member_id: UUID) -> None:
        """Stamp first join and bump last access."""
        await self._conn.execute(
            """
            UPDATE project_members
            SET joined_at = COALESCE(joined_at, NOW()), last_accessed_at = NOW()
            WHERE id = $1
            """,
            member_id,
        )

    async def list_members(
        self,
        project_id: UUID,
        include_inactive: bool = False,
        role: Role | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ProjectMember]:
        """List memberships of a project, admins first."""
        rows = await self._conn.fetch(
            f"""
            {MEMBER_SELECT}
            WHERE m.project_id = $1
              AND ($2 OR m.is_active = true)
              AND ($3::text IS NULL OR m.role = $3)
            ORDER BY (m.role = 'admin') DESC, m.created_at
            LIMIT $4 OFFSET $5
            """,
            project_id,
            include_inactive,
            role.value if role else None,
            limit,
            offset,
        )
        return [self._row_to_member(row) for row in rows]

    async def list_user_memberships(self, user_id: UUID) -> list[dict[str, Any]]:
        """List a user's active memberships with project details."""
        rows = await self._conn.fetch(
            """
            SELECT p.id AS project_id, p.name, p.slug, m.role, m.joined_at, m.last_accessed_at
            FROM project_members m
            JOIN projects p ON p.id = m.project_id
            WHERE m.user_id = $1 AND m.is_active = true AND p.deleted_at IS NULL
            ORDER BY m.last_accessed_at DESC NULLS LAST, p.name
            """,
            user_id,
        )
        return [dict(row) for row in rows]

    async def _require(self, member_id: UUID) -> ProjectMember:
        row = await self._conn.fetchrow(f"{MEMBER_SELECT} WHERE m.id = $1", member_id)
        if not row:
            raise RuntimeError(f"Membership {member_id} vanished mid-transaction")
        return self._row_to_member(row)

    def _row_to_member(self, row: Any) -> ProjectMember:
        """Convert a database row to a ProjectMember."""
        role = Role(row["role"])
        return ProjectMember(
            id=row["id"],
            project_id=row["project_id"],
            user_id=row["user_id"],
            grant=RoleGrant.build(role, _json_value(row["permissions"], [])),
            is_active=row["is_active"],
            invited_by=row["invited_by"],
            invited_at=row["invited_at"],
            joined_at=row["joined_at"],
            last_accessed_at=row["last_accessed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            user_email=row.get("user_email"),
            user_name=row.get("user_name"),
            metadata=_json_value(row["metadata"], {}),
        )
