"""Membership service enforcing the project role model."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID

import structlog

from querybridge.core.exceptions import (
    AlreadyMemberError,
    LastAdminViolationError,
    MemberNotFoundError,
    ProjectNotFoundError,
    UserNotFoundError,
)
from querybridge.core.interfaces import TransactionManager
from querybridge.core.rbac.repository import MembershipRepository
from querybridge.core.rbac.types import (
    ROLE_DESCRIPTIONS,
    ROLE_PERMISSIONS,
    Permission,
    ProjectMember,
    Role,
    RoleGrant,
)

logger = structlog.get_logger()

RepositoryFactory = Callable[[Any], MembershipRepository]


class MembershipService:
    """Answers authorization questions and guards membership mutations.

    Each mutation runs in its own transaction: the project row is locked,
    the member and the live admin count are re-read, and only then is the
    write issued. Two concurrent removals of a project's last two admins
    therefore serialise on the lock and the second sees a count of one.
    """

    def __init__(self, db: TransactionManager, repository_factory: RepositoryFactory) -> None:
        """Initialize the service.

        Args:
            db: Source of transactional connections.
            repository_factory: Builds a repository bound to a connection.
        """
        self._db = db
        self._repository_factory = repository_factory

    async def add_member(
        self,
        project_id: UUID,
        user_id: UUID,
        role: Role,
        acted_by: UUID | None,
        permissions: Iterable[str] | None = None,
    ) -> ProjectMember:
        """Add a user to a project, reactivating a removed membership.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            UserNotFoundError: If the user does not exist.
            AlreadyMemberError: If an active membership exists.
        """
        grant = RoleGrant.build(role, permissions)
        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            if not await repo.lock_project(project_id):
                raise ProjectNotFoundError(project_id)
            if not await repo.user_exists(user_id):
                raise UserNotFoundError(user_id)

            existing = await repo.get_member(project_id, user_id)
            if existing is not None and existing.is_active:
                raise AlreadyMemberError(project_id, user_id)

            if existing is not None:
                member = await repo.reactivate_member(existing.id, grant, invited_by=acted_by)
                event = "member_reactivated"
            else:
                member = await repo.insert_member(project_id, user_id, grant, invited_by=acted_by)
                event = "member_added"

        logger.info(
            event,
            project_id=str(project_id),
            user_id=str(user_id),
            role=role.value,
            acted_by=str(acted_by) if acted_by else None,
        )
        return member

    async def remove_member(self, project_id: UUID, user_id: UUID) -> ProjectMember:
        """Soft-remove a membership.

        Raises:
            MemberNotFoundError: If there is no active membership.
            LastAdminViolationError: If the member is the sole active admin.
        """
        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            member = await self._get_locked_member(repo, project_id, user_id)
            if member.is_active_admin and await repo.count_active_admins(project_id) <= 1:
                raise LastAdminViolationError(project_id)
            await repo.deactivate_member(member.id)
            member.is_active = False

        logger.info("member_removed", project_id=str(project_id), user_id=str(user_id))
        return member

    async def update_role(
        self,
        project_id: UUID,
        user_id: UUID,
        new_role: Role,
        custom_permissions: Iterable[str] | None = None,
    ) -> ProjectMember:
        """Change a member's role.

        ``custom_permissions`` is only honoured when ``new_role`` is custom.

        Raises:
            MemberNotFoundError: If there is no active membership.
            LastAdminViolationError: If the change leaves no active admin.
        """
        grant = RoleGrant.build(new_role, custom_permissions)
        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            member = await self._get_locked_member(repo, project_id, user_id)
            demoting_admin = member.grant.is_admin and not grant.is_admin
            if demoting_admin and await repo.count_active_admins(project_id) <= 1:
                raise LastAdminViolationError(project_id)
            updated = await repo.update_grant(member.id, grant)

        logger.info(
            "member_role_updated",
            project_id=str(project_id),
            user_id=str(user_id),
            old_role=member.role.value,
            new_role=new_role.value,
        )
        return updated

    async def get_member(
        self, project_id: UUID, user_id: UUID, include_inactive: bool = False
    ) -> ProjectMember | None:
        """Get a user's membership, active only unless asked otherwise."""
        async with self._db.transaction() as conn:
            member = await self._repository_factory(conn).get_member(project_id, user_id)
        if member is None or (not member.is_active and not include_inactive):
            return None
        return member

    async def has_role(self, project_id: UUID, user_id: UUID, required_role: Role) -> bool:
        """Check whether the user's active membership meets ``required_role``."""
        member = await self.get_member(project_id, user_id)
        if member is None:
            return False
        return member.grant.satisfies(required_role)

    async def has_permission(
        self,
        project_id: UUID,
        user_id: UUID,
        permission: Permission | str | Iterable[Permission | str],
    ) -> bool:
        """Check whether the user holds any of the requested permissions."""
        member = await self.get_member(project_id, user_id)
        if member is None:
            return False
        if isinstance(permission, str):
            return member.grant.allows(permission)
        return member.grant.allows(*permission)

    async def list_members(
        self,
        project_id: UUID,
        include_inactive: bool = False,
        role: Role | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ProjectMember]:
        """List project members."""
        async with self._db.transaction() as conn:
            return await self._repository_factory(conn).list_members(
                project_id,
                include_inactive=include_inactive,
                role=role,
                limit=limit,
                offset=offset,
            )

    async def list_user_memberships(self, user_id: UUID) -> list[dict[str, Any]]:
        """List the projects a user is an active member of."""
        async with self._db.transaction() as conn:
            return await self._repository_factory(conn).list_user_memberships(user_id)

    async def record_access(self, project_id: UUID, user_id: UUID) -> None:
        """Mark the first join and bump the last access time."""
        async with self._db.transaction() as conn:
            repo = self._repository_factory(conn)
            member = await repo.get_member(project_id, user_id)
            if member is not None and member.is_active:
                await repo.touch_access(member.id)

    @staticmethod
    def available_roles() -> list[dict[str, Any]]:
        """Describe every role and its default permissions."""
        return [
            {
                "key": role.value,
                "description": ROLE_DESCRIPTIONS[role],
                "rank": role.rank,
                "permissions": sorted(p.value for p in ROLE_PERMISSIONS[role]),
            }
            for role in Role
        ]

    async def _get_locked_member(
        self, repo: MembershipRepository, project_id: UUID, user_id: UUID
    ) -> ProjectMember:
        if not await repo.lock_project(project_id):
            raise ProjectNotFoundError(project_id)
        member = await repo.get_member(project_id, user_id)
        if member is None or not member.is_active:
            raise MemberNotFoundError(project_id, user_id)
        return member
