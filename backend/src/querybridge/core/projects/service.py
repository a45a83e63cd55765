"""Project lifecycle, activity log and version snapshots."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any
from uuid import UUID

import structlog

from querybridge.core.exceptions import ProjectNotFoundError
from querybridge.core.interfaces import TransactionManager
from querybridge.core.projects.repository import ProjectRepository
from querybridge.core.projects.types import (
    ActivityAction,
    EntityType,
    Project,
    ProjectActivity,
    ProjectActivityCreate,
    ProjectVersion,
    next_patch_version,
)
from querybridge.core.rbac.repository import MembershipRepository
from querybridge.core.rbac.types import Permission, Role, RoleGrant

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset(
    {"name", "description", "is_public", "is_active", "settings", "metadata", "template_id"}
)


def generate_slug(name: str) -> str:
    """Generate a URL-safe slug from a name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:50] or "project"


class ProjectService:
    """Service for projects and their append-only collections."""

    def __init__(
        self,
        db: TransactionManager,
        projects_factory: Callable[[Any], ProjectRepository],
        members_factory: Callable[[Any], MembershipRepository],
    ) -> None:
        """Initialize the service.

        Args:
            db: Source of transactional connections.
            projects_factory: Builds a project repository on a connection.
            members_factory: Builds a membership repository on a connection.
        """
        self._db = db
        self._projects_factory = projects_factory
        self._members_factory = members_factory

    async def create_project(
        self,
        name: str,
        created_by: UUID,
        description: str | None = None,
        is_public: bool = False,
        settings: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        template_id: UUID | None = None,
    ) -> Project:
        """Create a project with its creator as the first admin.

        The project row, the admin membership and the creation activity are
        written in one transaction, so no project ever exists without an
        admin.
        """
        async with self._db.transaction() as conn:
            project = await self._insert_with_admin(
                self._projects_factory(conn),
                self._members_factory(conn),
                name=name,
                created_by=created_by,
                description=description,
                is_public=is_public,
                settings=settings or {},
                metadata=metadata or {},
                template_id=template_id,
            )

        logger.info("project_created", project_id=str(project.id), slug=project.slug)
        return project

    async def create_from_template(
        self,
        template_id: UUID,
        created_by: UUID,
        name: str | None = None,
        description: str | None = None,
        settings: dict[str, Any] | None = None,
        variables: dict[str, Any] | None = None,
    ) -> Project:
        """Create a project seeded from another project's settings.

        The template must be public or readable by ``created_by``. Settings
        given here override the template's. The new project's metadata
        records the template id, its current version and ``variables``.

        Raises:
            ProjectNotFoundError: Template missing or not visible to the caller.
        """
        async with self._db.transaction() as conn:
            projects = self._projects_factory(conn)
            members = self._members_factory(conn)

            template = await projects.get_project(template_id)
            if template is None:
                raise ProjectNotFoundError(template_id)
            if not template.is_public:
                member = await members.get_member(template_id, created_by)
                if (
                    member is None
                    or not member.is_active
                    or not member.grant.allows(Permission.PROJECT_READ)
                ):
                    raise ProjectNotFoundError(template_id)

            current = await projects.get_current_version(template_id)
            project = await self._insert_with_admin(
                projects,
                members,
                name=name or f"{template.name} (Copy)",
                created_by=created_by,
                description=description or template.description,
                is_public=False,
                settings={**template.settings, **(settings or {})},
                metadata={
                    **template.metadata,
                    "created_from_template": True,
                    "template_id": str(template_id),
                    "template_version": current.version if current else None,
                    "template_variables": variables or {},
                },
                template_id=template_id,
            )

        logger.info(
            "project_created_from_template",
            project_id=str(project.id),
            template_id=str(template_id),
        )
        return project

    async def _insert_with_admin(
        self,
        projects: ProjectRepository,
        members: MembershipRepository,
        *,
        name: str,
        created_by: UUID,
        description: str | None,
        is_public: bool,
        settings: dict[str, Any],
        metadata: dict[str, Any],
        template_id: UUID | None,
    ) -> Project:
        slug = await self._unique_slug(projects, name)
        project = await projects.insert_project(
            name=name,
            slug=slug,
            created_by=created_by,
            description=description,
            is_public=is_public,
            settings=settings,
            metadata=metadata,
            template_id=template_id,
        )
        await members.insert_member(
            project.id,
            created_by,
            RoleGrant.build(Role.ADMIN),
            invited_by=created_by,
            joined=True,
        )
        await projects.insert_activity(
            ProjectActivityCreate(
                project_id=project.id,
                user_id=created_by,
                action=ActivityAction.CREATE,
                entity_type=EntityType.PROJECT,
                entity_id=project.id,
                entity_name=name,
                metadata={"template_id": str(template_id)} if template_id else {},
            )
        )
        return project

    async def get_project(self, project_id: UUID) -> Project:
        """Get a project.

        Raises:
            ProjectNotFoundError: If missing or soft-deleted.
        """
        async with self._db.transaction() as conn:
            project = await self._projects_factory(conn).get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def update_project(self, project_id: UUID, changes: dict[str, Any]) -> Project:
        """Update editable project fields; unknown keys are ignored."""
        filtered = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        async with self._db.transaction() as conn:
            projects = self._projects_factory(conn)
            if not filtered:
                project = await projects.get_project(project_id)
            else:
                project = await projects.update_project(project_id, filtered)
        if project is None:
            raise ProjectNotFoundError(project_id)
        logger.info("project_updated", project_id=str(project_id), fields=sorted(filtered))
        return project

    async def delete_project(self, project_id: UUID) -> None:
        """Soft-delete a project."""
        async with self._db.transaction() as conn:
            deleted = await self._projects_factory(conn).soft_delete_project(project_id)
        if not deleted:
            raise ProjectNotFoundError(project_id)
        logger.info("project_deleted", project_id=str(project_id))

    async def list_projects_for_user(
        self, user_id: UUID, include_public: bool = False
    ) -> list[dict[str, Any]]:
        """List projects visible to a user with their role."""
        async with self._db.transaction() as conn:
            return await self._projects_factory(conn).list_for_user(
                user_id, include_public=include_public
            )

    async def log_activity(self, entry: ProjectActivityCreate) -> ProjectActivity:
        """Append an activity entry."""
        async with self._db.transaction() as conn:
            return await self._projects_factory(conn).insert_activity(entry)

    async def activity_feed(
        self,
        project_id: UUID,
        limit: int = 50,
        offset: int = 0,
        action: ActivityAction | None = None,
        entity_type: EntityType | None = None,
    ) -> list[ProjectActivity]:
        """Page through a project's activity, newest first."""
        async with self._db.transaction() as conn:
            return await self._projects_factory(conn).list_activity(
                project_id,
                limit=max(1, min(limit, 100)),
                offset=max(0, offset),
                action=action.value if action else None,
                entity_type=entity_type.value if entity_type else None,
            )

    async def create_version(
        self,
        project_id: UUID,
        created_by: UUID | None,
        name: str | None = None,
        description: str | None = None,
    ) -> ProjectVersion:
        """Snapshot the project and make it the current version.

        The previous current version is unflagged in the same transaction,
        under a lock on the project row.
        """
        async with self._db.transaction() as conn:
            projects = self._projects_factory(conn)
            project = await projects.get_project(project_id, for_update=True)
            if project is None:
                raise ProjectNotFoundError(project_id)

            current = await projects.get_current_version(project_id)
            version = next_patch_version(current.version if current else None)
            if current is not None:
                await projects.clear_current_version(project_id)

            created = await projects.insert_version(
                project_id=project_id,
                version=version,
                snapshot={
                    "name": project.name,
                    "description": project.description,
                    "is_public": project.is_public,
                    "settings": project.settings,
                    "metadata": project.metadata,
                },
                created_by=created_by,
                name=name,
                description=description,
            )
            await projects.insert_activity(
                ProjectActivityCreate(
                    project_id=project_id,
                    user_id=created_by,
                    action=ActivityAction.CREATE,
                    entity_type=EntityType.VERSION,
                    entity_id=created.id,
                    entity_name=version,
                )
            )

        logger.info("project_version_created", project_id=str(project_id), version=version)
        return created

    async def list_versions(self, project_id: UUID) -> list[ProjectVersion]:
        """List a project's versions, newest first."""
        async with self._db.transaction() as conn:
            return await self._projects_factory(conn).list_versions(project_id)

    async def _unique_slug(self, projects: ProjectRepository, name: str) -> str:
        base_slug = generate_slug(name)
        slug = base_slug
        counter = 1
        while await projects.slug_exists(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug
