"""Project membership, roles and permissions."""

from querybridge.core.rbac.repository import MembershipRepository
from querybridge.core.rbac.service import MembershipService
from querybridge.core.rbac.types import (
    ROLE_PERMISSIONS,
    MemberStatus,
    Permission,
    ProjectMember,
    Role,
    RoleGrant,
)

__all__ = [
    "ROLE_PERMISSIONS",
    "MemberStatus",
    "MembershipRepository",
    "MembershipService",
    "Permission",
    "ProjectMember",
    "Role",
    "RoleGrant",
]
