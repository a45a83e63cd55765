"""Tests for membership service."""

import asyncio
from typing import Any
from uuid import uuid4

import pytest
from querybridge.core.exceptions import (
    AlreadyMemberError,
    LastAdminViolationError,
    MemberNotFoundError,
    ProjectNotFoundError,
    UserNotFoundError,
)
from querybridge.core.rbac import MembershipService, MemberStatus, Permission, Role


@pytest.fixture
def service(tx: Any, membership_repo: Any) -> MembershipService:
    """Service whose repository factory ignores the connection."""
    return MembershipService(tx, lambda conn: membership_repo)


@pytest.fixture
def project(membership_store: Any) -> Any:
    """A project with no members yet."""
    return membership_store.add_project()


class TestAddMember:
    """Tests for add_member."""

    async def test_adds_invited_member(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """New members start invited until first access."""
        user = membership_store.add_user()

        member = await service.add_member(project, user, Role.EDITOR, acted_by=None)

        assert member.role is Role.EDITOR
        assert member.status is MemberStatus.INVITED

    async def test_rejects_active_duplicate(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """An active membership cannot be added twice."""
        user = membership_store.add_user()
        await service.add_member(project, user, Role.USER, acted_by=None)

        with pytest.raises(AlreadyMemberError):
            await service.add_member(project, user, Role.ADMIN, acted_by=None)

    async def test_unknown_project(self, service: MembershipService, membership_store: Any) -> None:
        """Raises ProjectNotFoundError for a missing project."""
        with pytest.raises(ProjectNotFoundError):
            await service.add_member(uuid4(), membership_store.add_user(), Role.USER, None)

    async def test_unknown_user(self, service: MembershipService, project: Any) -> None:
        """Raises UserNotFoundError for a missing user."""
        with pytest.raises(UserNotFoundError):
            await service.add_member(project, uuid4(), Role.USER, None)

    async def test_readd_reactivates_single_row(
        self,
        service: MembershipService,
        membership_store: Any,
        project: Any,
    ) -> None:
        """Removing then re-adding leaves exactly one active row."""
        admin = membership_store.add_user()
        user = membership_store.add_user()
        await service.add_member(project, admin, Role.ADMIN, acted_by=None)
        first = await service.add_member(project, user, Role.USER, acted_by=admin)
        await service.remove_member(project, user)

        again = await service.add_member(project, user, Role.EDITOR, acted_by=admin)

        rows = [m for m in membership_store.members.values() if m.user_id == user]
        assert len(rows) == 1
        assert again.id == first.id
        assert again.is_active and again.role is Role.EDITOR


class TestLastAdminInvariant:
    """Tests for the rule that a project never loses its last admin."""

    async def test_membership_scenario(
        self,
        service: MembershipService,
        membership_store: Any,
        membership_repo: Any,
        project: Any,
    ) -> None:
        """Sole admin A cannot leave until C is made admin."""
        a = membership_store.add_user()
        b = membership_store.add_user()
        c = membership_store.add_user()
        await service.add_member(project, a, Role.ADMIN, acted_by=None)
        await service.add_member(project, b, Role.EDITOR, acted_by=a)

        with pytest.raises(LastAdminViolationError):
            await service.remove_member(project, a)

        await service.add_member(project, c, Role.ADMIN, acted_by=a)
        await service.remove_member(project, a)

        assert membership_repo.active_roles(project) == {b: Role.EDITOR, c: Role.ADMIN}

    async def test_cannot_demote_last_admin(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """Demoting the only admin is rejected."""
        a = membership_store.add_user()
        await service.add_member(project, a, Role.ADMIN, acted_by=None)

        with pytest.raises(LastAdminViolationError):
            await service.update_role(project, a, Role.EDITOR)

    async def test_can_demote_one_of_two_admins(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """Demotion is fine while another admin remains."""
        a = membership_store.add_user()
        b = membership_store.add_user()
        await service.add_member(project, a, Role.ADMIN, acted_by=None)
        await service.add_member(project, b, Role.ADMIN, acted_by=a)

        updated = await service.update_role(project, a, Role.VIEWER)

        assert updated.role is Role.VIEWER

    async def test_concurrent_removals_keep_one_admin(
        self,
        service: MembershipService,
        membership_store: Any,
        membership_repo: Any,
        project: Any,
    ) -> None:
        """Of two concurrent removals of the last two admins, exactly one fails."""
        a = membership_store.add_user()
        b = membership_store.add_user()
        await service.add_member(project, a, Role.ADMIN, acted_by=None)
        await service.add_member(project, b, Role.ADMIN, acted_by=a)

        results = await asyncio.gather(
            service.remove_member(project, a),
            service.remove_member(project, b),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, LastAdminViolationError)]
        assert len(failures) == 1
        assert await membership_repo.count_active_admins(project) == 1

    async def test_remove_unknown_member(self, service: MembershipService, project: Any) -> None:
        """Raises MemberNotFoundError when there is no active membership."""
        with pytest.raises(MemberNotFoundError):
            await service.remove_member(project, uuid4())


class TestAuthorizationQueries:
    """Tests for has_role and has_permission."""

    async def test_has_role_by_rank(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """Editors satisfy user but not admin."""
        user = membership_store.add_user()
        await service.add_member(project, user, Role.EDITOR, acted_by=None)

        assert await service.has_role(project, user, Role.USER)
        assert not await service.has_role(project, user, Role.ADMIN)

    async def test_non_member_has_nothing(self, service: MembershipService, project: Any) -> None:
        """Non-members fail every check."""
        assert not await service.has_role(project, uuid4(), Role.VIEWER)
        assert not await service.has_permission(project, uuid4(), Permission.PROJECT_READ)

    async def test_removed_member_loses_access(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """Inactive memberships grant nothing."""
        admin = membership_store.add_user()
        user = membership_store.add_user()
        await service.add_member(project, admin, Role.ADMIN, acted_by=None)
        await service.add_member(project, user, Role.USER, acted_by=admin)
        await service.remove_member(project, user)

        assert not await service.has_permission(project, user, Permission.QUERY_READ)
        assert await service.get_member(project, user) is None
        assert await service.get_member(project, user, include_inactive=True) is not None

    async def test_custom_permissions(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """Custom members hold exactly their list."""
        user = membership_store.add_user()
        await service.add_member(
            project, user, Role.CUSTOM, acted_by=None, permissions=["database:read"]
        )

        assert await service.has_permission(project, user, Permission.DATABASE_READ)
        assert not await service.has_permission(project, user, [Permission.QUERY_EXECUTE])


class TestRecordAccess:
    """Tests for record_access."""

    async def test_first_access_joins(
        self, service: MembershipService, membership_store: Any, project: Any
    ) -> None:
        """The first access turns an invitation into an active membership."""
        user = membership_store.add_user()
        await service.add_member(project, user, Role.USER, acted_by=None)

        await service.record_access(project, user)

        member = await service.get_member(project, user)
        assert member is not None
        assert member.status is MemberStatus.ACTIVE
        assert member.last_accessed_at is not None


class TestAvailableRoles:
    """Tests for the role catalogue."""

    def test_lists_every_role(self) -> None:
        """Every role is described with its default permissions."""
        roles = {r["key"]: r for r in MembershipService.available_roles()}

        assert set(roles) == {r.value for r in Role}
        assert roles["custom"]["permissions"] == []
        assert "member:add" in roles["admin"]["permissions"]
