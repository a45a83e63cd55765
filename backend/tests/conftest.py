"""Shared fixtures: in-memory stand-ins for the application database."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
from querybridge.core.rbac import ProjectMember, Role, RoleGrant


class FakeTransactionManager:
    """Serialises transactions the way a project row lock would."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.committed = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[object]:
        async with self._lock:
            yield object()
            self.committed += 1


class MembershipStore:
    """Projects, users and membership rows shared across repositories."""

    def __init__(self) -> None:
        self.projects: set[UUID] = set()
        self.users: set[UUID] = set()
        self.members: dict[UUID, ProjectMember] = {}

    def add_project(self) -> UUID:
        project_id = uuid4()
        self.projects.add(project_id)
        return project_id

    def add_user(self) -> UUID:
        user_id = uuid4()
        self.users.add(user_id)
        return user_id


class InMemoryMembershipRepository:
    """Membership repository over a MembershipStore."""

    def __init__(self, store: MembershipStore) -> None:
        self.store = store

    async def lock_project(self, project_id: UUID) -> bool:
        return project_id in self.store.projects

    async def user_exists(self, user_id: UUID) -> bool:
        return user_id in self.store.users

    async def get_member(self, project_id: UUID, user_id: UUID) -> ProjectMember | None:
        for member in self.store.members.values():
            if member.project_id == project_id and member.user_id == user_id:
                return replace(member)
        return None

    async def count_active_admins(self, project_id: UUID) -> int:
        return sum(
            1
            for m in self.store.members.values()
            if m.project_id == project_id and m.is_active_admin
        )

    async def insert_member(
        self,
        project_id: UUID,
        user_id: UUID,
        grant: RoleGrant,
        invited_by: UUID | None,
        joined: bool = False,
    ) -> ProjectMember:
        now = datetime.now(UTC)
        member = ProjectMember(
            id=uuid4(),
            project_id=project_id,
            user_id=user_id,
            grant=grant,
            is_active=True,
            invited_by=invited_by,
            invited_at=now,
            joined_at=now if joined else None,
            last_accessed_at=None,
            created_at=now,
        )
        self.store.members[member.id] = member
        return replace(member)

    async def reactivate_member(
        self, member_id: UUID, grant: RoleGrant, invited_by: UUID | None
    ) -> ProjectMember:
        member = self.store.members[member_id]
        member.grant = grant
        member.is_active = True
        member.invited_by = invited_by
        member.joined_at = None
        member.last_accessed_at = None
        return replace(member)

    async def deactivate_member(self, member_id: UUID) -> None:
        self.store.members[member_id].is_active = False

    async def update_grant(self, member_id: UUID, grant: RoleGrant) -> ProjectMember:
        self.store.members[member_id].grant = grant
        return replace(self.store.members[member_id])

    async def touch_access(self, member_id: UUID) -> None:
        member = self.store.members[member_id]
        now = datetime.now(UTC)
        member.joined_at = member.joined_at or now
        member.last_accessed_at = now

    async def list_members(
        self,
        project_id: UUID,
        include_inactive: bool = False,
        role: Role | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ProjectMember]:
        rows = [
            replace(m)
            for m in self.store.members.values()
            if m.project_id == project_id
            and (include_inactive or m.is_active)
            and (role is None or m.role is role)
        ]
        return rows[offset : offset + limit]

    async def list_user_memberships(self, user_id: UUID) -> list[dict[str, Any]]:
        return [
            {"project_id": m.project_id, "role": m.role.value}
            for m in self.store.members.values()
            if m.user_id == user_id and m.is_active
        ]

    def active_roles(self, project_id: UUID) -> dict[UUID, Role]:
        return {
            m.user_id: m.role
            for m in self.store.members.values()
            if m.project_id == project_id and m.is_active
        }


class InMemoryDatabaseRepository:
    """Registered database rows keyed by id, scoped by project."""

    def __init__(self, projects: set[UUID]) -> None:
        self.projects = projects
        self.rows: dict[UUID, dict[str, Any]] = {}

    async def lock_project(self, project_id: UUID) -> bool:
        return project_id in self.projects

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
        row = {
            "id": uuid4(),
            "project_id": project_id,
            "name": name,
            "type": database_type,
            "connection_config_encrypted": encrypted_config,
            "is_primary": is_primary,
            "is_active": True,
            "description": description,
            "metadata": metadata,
            "created_by": created_by,
            "created_at": datetime.now(UTC),
            "updated_at": None,
            "deleted_at": None,
        }
        self.rows[row["id"]] = row
        return dict(row)

    def _live(self, project_id: UUID) -> list[dict[str, Any]]:
        return [
            r
            for r in self.rows.values()
            if r["project_id"] == project_id and r["is_active"] and r["deleted_at"] is None
        ]

    async def get_database(self, project_id: UUID, database_id: UUID) -> dict[str, Any] | None:
        for row in self._live(project_id):
            if row["id"] == database_id:
                return dict(row)
        return None

    async def get_primary(self, project_id: UUID) -> dict[str, Any] | None:
        for row in self._live(project_id):
            if row["is_primary"]:
                return dict(row)
        return None

    async def list_databases(self, project_id: UUID) -> list[dict[str, Any]]:
        rows = sorted(self._live(project_id), key=lambda r: (not r["is_primary"], r["name"]))
        return [dict(r) for r in rows]

    async def clear_primary(self, project_id: UUID) -> None:
        for row in self.rows.values():
            if row["project_id"] == project_id:
                row["is_primary"] = False

    async def set_primary(self, project_id: UUID, database_id: UUID) -> bool:
        row = self.rows.get(database_id)
        if row is None or row["project_id"] != project_id:
            return False
        row["is_primary"] = True
        return True

    async def update_database(
        self, project_id: UUID, database_id: UUID, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        row = self.rows.get(database_id)
        if row is None or row["project_id"] != project_id:
            return None
        row.update(changes)
        row["updated_at"] = datetime.now(UTC)
        return dict(row)

    async def soft_delete_database(self, project_id: UUID, database_id: UUID) -> bool:
        row = self.rows.get(database_id)
        if row is None or row["project_id"] != project_id or row["deleted_at"] is not None:
            return False
        row.update(is_active=False, is_primary=False, deleted_at=datetime.now(UTC))
        return True


@pytest.fixture
def tx() -> FakeTransactionManager:
    """Transaction manager that serialises all transactions."""
    return FakeTransactionManager()


@pytest.fixture
def membership_store() -> MembershipStore:
    """Empty membership store."""
    return MembershipStore()


@pytest.fixture
def membership_repo(membership_store: MembershipStore) -> InMemoryMembershipRepository:
    """Membership repository over the shared store."""
    return InMemoryMembershipRepository(membership_store)


@pytest.fixture
def database_repo(membership_store: MembershipStore) -> InMemoryDatabaseRepository:
    """Database repository sharing the store's projects."""
    return InMemoryDatabaseRepository(membership_store.projects)
