"""Project membership domain types."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class Role(str, Enum):
    """Project roles.

    The four standard roles are totally ordered by ``rank``. ``CUSTOM`` has
    no rank; it is authorised purely through its explicit permission set.
    """

    VIEWER = "viewer"
    USER = "user"
    EDITOR = "editor"
    ADMIN = "admin"
    CUSTOM = "custom"

    @property
    def rank(self) -> int | None:
        """Numeric position in the role order, None for custom."""
        return ROLE_RANK.get(self)

    @property
    def is_standard(self) -> bool:
        """Whether the role sits on the ranked hierarchy."""
        return self is not Role.CUSTOM


ROLE_RANK: dict[Role, int] = {
    Role.VIEWER: 0,
    Role.USER: 1,
    Role.EDITOR: 2,
    Role.ADMIN: 3,
}


class Permission(str, Enum):
    """Fine-grained project permissions."""

    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    PROJECT_EXPORT = "project:export"
    PROJECT_IMPORT = "project:import"

    MEMBER_LIST = "member:list"
    MEMBER_ADD = "member:add"
    MEMBER_REMOVE = "member:remove"
    MEMBER_UPDATE = "member:update"

    QUERY_CREATE = "query:create"
    QUERY_READ = "query:read"
    QUERY_UPDATE = "query:update"
    QUERY_DELETE = "query:delete"
    QUERY_EXECUTE = "query:execute"
    QUERY_EXPORT = "query:export"
    QUERY_IMPORT = "query:import"

    DATABASE_CREATE = "database:create"
    DATABASE_READ = "database:read"
    DATABASE_UPDATE = "database:update"
    DATABASE_DELETE = "database:delete"
    DATABASE_TEST = "database:test"

    DASHBOARD_CREATE = "dashboard:create"
    DASHBOARD_READ = "dashboard:read"
    DASHBOARD_UPDATE = "dashboard:update"
    DASHBOARD_DELETE = "dashboard:delete"

    SCHEDULE_CREATE = "schedule:create"
    SCHEDULE_READ = "schedule:read"
    SCHEDULE_UPDATE = "schedule:update"
    SCHEDULE_DELETE = "schedule:delete"
    SCHEDULE_EXECUTE = "schedule:execute"

    API_KEY_CREATE = "api_key:create"
    API_KEY_READ = "api_key:read"
    API_KEY_UPDATE = "api_key:update"
    API_KEY_DELETE = "api_key:delete"

    WEBHOOK_CREATE = "webhook:create"
    WEBHOOK_READ = "webhook:read"
    WEBHOOK_UPDATE = "webhook:update"
    WEBHOOK_DELETE = "webhook:delete"

    SETTINGS_READ = "settings:read"
    SETTINGS_UPDATE = "settings:update"

    ACTIVITY_READ = "activity:read"


_VIEWER_PERMISSIONS = frozenset(
    {
        Permission.PROJECT_READ,
        Permission.MEMBER_LIST,
        Permission.QUERY_READ,
        Permission.QUERY_EXECUTE,
        Permission.DATABASE_READ,
        Permission.DASHBOARD_READ,
        Permission.SCHEDULE_READ,
        Permission.SETTINGS_READ,
        Permission.ACTIVITY_READ,
    }
)

_USER_PERMISSIONS = _VIEWER_PERMISSIONS | {
    Permission.QUERY_CREATE,
    Permission.QUERY_UPDATE,
    Permission.QUERY_DELETE,
    Permission.QUERY_EXPORT,
    Permission.DATABASE_TEST,
    Permission.DASHBOARD_CREATE,
    Permission.DASHBOARD_UPDATE,
}

_EDITOR_PERMISSIONS = _USER_PERMISSIONS | {
    Permission.PROJECT_EXPORT,
    Permission.DASHBOARD_DELETE,
    Permission.SCHEDULE_CREATE,
    Permission.SCHEDULE_UPDATE,
    Permission.SCHEDULE_DELETE,
    Permission.SCHEDULE_EXECUTE,
    Permission.API_KEY_READ,
    Permission.WEBHOOK_READ,
}

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.VIEWER: _VIEWER_PERMISSIONS,
    Role.USER: frozenset(_USER_PERMISSIONS),
    Role.EDITOR: frozenset(_EDITOR_PERMISSIONS),
    Role.ADMIN: frozenset(Permission),
    Role.CUSTOM: frozenset(),
}

ROLE_DESCRIPTIONS: dict[Role, str] = {
    Role.ADMIN: "Full access to all project features and settings",
    Role.EDITOR: "Can create and edit content but cannot manage project settings or members",
    Role.USER: "Can write and run queries and build dashboards",
    Role.VIEWER: "Can only view content and run queries",
    Role.CUSTOM: "Custom role with specific permissions",
}


def parse_permissions(values: Iterable[str]) -> frozenset[Permission]:
    """Convert raw permission strings, rejecting unknown ones."""
    return frozenset(Permission(value) for value in values)


@dataclass(frozen=True)
class RoleGrant:
    """A role together with the permission set it confers.

    For standard roles the set always comes from ``ROLE_PERMISSIONS`` and any
    stored list is ignored. For ``CUSTOM`` it is exactly the explicit list.
    """

    role: Role
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    @classmethod
    def build(cls, role: Role, custom_permissions: Iterable[str] | None = None) -> RoleGrant:
        """Build a grant for ``role``."""
        if role is Role.CUSTOM:
            return cls(role, parse_permissions(custom_permissions or ()))
        return cls(role, ROLE_PERMISSIONS[role])

    @property
    def is_admin(self) -> bool:
        """Whether the grant is the admin role."""
        return self.role is Role.ADMIN

    def satisfies(self, required: Role) -> bool:
        """Check whether this grant is at least as privileged as ``required``.

        Standard roles compare by rank. A custom grant satisfies ``required``
        only when it holds every default permission of that role.
        """
        if required is Role.CUSTOM:
            raise ValueError("custom is not a rank and cannot be required")
        if self.role is Role.CUSTOM:
            return ROLE_PERMISSIONS[required] <= self.permissions
        return ROLE_RANK[self.role] >= ROLE_RANK[required]

    def allows(self, *permissions: Permission | str) -> bool:
        """Check whether any of ``permissions`` is held. Admin holds all."""
        if self.is_admin:
            return True
        wanted = {Permission(p) for p in permissions}
        return bool(wanted & self.permissions)

    def stored_permissions(self) -> list[str]:
        """Permission list persisted on the membership row."""
        if self.role is Role.CUSTOM:
            return sorted(p.value for p in self.permissions)
        return []


class MemberStatus(str, Enum):
    """Lifecycle state of a membership row."""

    INVITED = "invited"
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class ProjectMember:
    """A user's membership in a project."""

    id: UUID
    project_id: UUID
    user_id: UUID
    grant: RoleGrant
    is_active: bool
    invited_by: UUID | None
    invited_at: datetime | None
    joined_at: datetime | None
    last_accessed_at: datetime | None
    created_at: datetime
    updated_at: datetime | None = None
    user_email: str | None = None
    user_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def role(self) -> Role:
        """Member role."""
        return self.grant.role

    @property
    def status(self) -> MemberStatus:
        """Derived lifecycle state."""
        if not self.is_active:
            return MemberStatus.INACTIVE
        if self.joined_at is None:
            return MemberStatus.INVITED
        return MemberStatus.ACTIVE

    @property
    def is_active_admin(self) -> bool:
        """Whether the member counts toward the admin invariant."""
        return self.is_active and self.grant.is_admin
