"""Membership repository protocol."""

from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from querybridge.core.rbac.types import ProjectMember, Role, RoleGrant


@runtime_checkable
class MembershipRepository(Protocol):
    """Protocol for membership persistence.

    Implementations are bound to one connection. When that connection is
    inside a transaction, ``lock_project`` must hold a row lock on the
    project until commit so that admin counts read afterwards stay valid.
    """

    async def lock_project(self, project_id: UUID) -> bool:
        """Lock the project row. Returns False if the project is missing."""
        ...

    async def user_exists(self, user_id: UUID) -> bool:
        """Check whether a user exists."""
        ...

    async def get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember | None:
        """Get the membership row regardless of active state."""
        ...

    async def count_active_admins(self, project_id: UUID) -> int:
        """Count active admin memberships."""
        ...

    async def insert_member(
        self,
        project_id: UUID,
        user_id: UUID,
        grant: RoleGrant,
        invited_by: UUID | None,
        joined: bool = False,
    ) -> ProjectMember:
        """Insert a new membership row."""
        ...

    async def reactivate_member(
        self, member_id: UUID, grant: RoleGrant, invited_by: UUID | None
    ) -> ProjectMember:
        """Reactivate an inactive row, resetting join and access timestamps."""
        ...

    async def deactivate_member(self, member_id: UUID) -> None:
        """Soft-remove a membership row."""
        ...

    async def update_grant(self, member_id: UUID, grant: RoleGrant) -> ProjectMember:
        """Replace the role and stored permissions of a row."""
        ...

    async def touch_access(self, member_id: UUID) -> None:
        """Stamp joined_at on first access and bump last_accessed_at."""
        ...

    async def list_members(
        self,
        project_id: UUID,
        include_inactive: bool = False,
        role: Role | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ProjectMember]:
        """List memberships of a project."""
        ...

    async def list_user_memberships(self, user_id: UUID) -> list[dict[str, Any]]:
        """List active memberships of a user with project name and slug."""
        ...
