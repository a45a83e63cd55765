"""Project-scoped authorization for routes under ``/projects/{project_id}``."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials

from querybridge.core.rbac import Permission, ProjectMember, Role, RoleGrant
from querybridge.core.rbac.types import parse_permissions
from querybridge.entrypoints.api.middleware.auth import (
    API_KEY_HEADER,
    ApiKeyContext,
    verify_api_key,
)
from querybridge.entrypoints.api.middleware.jwt_auth import bearer_scheme, verify_jwt

logger = structlog.get_logger()


@dataclass
class ProjectAccess:
    """An authorized caller within one project."""

    project_id: UUID
    user_id: UUID
    member: ProjectMember
    api_key: ApiKeyContext | None = None

    @property
    def grant(self) -> RoleGrant:
        """The acting grant.

        A key with its own permission list acts with that list, bounded by
        what its creator currently holds.
        """
        if self.api_key is not None and self.api_key.permissions:
            narrowed = parse_permissions(self.api_key.permissions) & self.member.grant.permissions
            return RoleGrant(Role.CUSTOM, narrowed)
        return self.member.grant


def _is_authorized(grant: RoleGrant, role: Role | None, permission: Permission | None) -> bool:
    if permission is not None:
        return grant.allows(permission)
    if role is None:
        return True
    return grant.satisfies(role)


async def authorize_project(
    request: Request,
    project_id: UUID,
    credentials: HTTPAuthorizationCredentials | None,
    api_key: str | None,
    role: Role | None = None,
    permission: Permission | None = None,
) -> ProjectAccess:
    """Authenticate the caller and check their standing in a project.

    An API key takes precedence over a bearer token and is only valid for
    the project it was issued in.

    Raises:
        HTTPException: 401 without credentials, 403 when not authorized.
    """
    key_context: ApiKeyContext | None = None
    if api_key:
        key_context = await verify_api_key(request, api_key)
        if key_context.project_id != project_id:
            logger.warning(
                "api_key_project_mismatch",
                key_id=str(key_context.key_id),
                project_id=str(project_id),
            )
            raise HTTPException(status_code=403, detail="API key is not valid for this project")
        user_id = key_context.user_id
    else:
        user_id = (await verify_jwt(request, credentials)).user_uuid

    memberships = request.app.state.membership_service
    member = await memberships.get_member(project_id, user_id)
    if member is None:
        raise HTTPException(status_code=403, detail="Not a member of this project")

    access = ProjectAccess(
        project_id=project_id, user_id=user_id, member=member, api_key=key_context
    )
    if not _is_authorized(access.grant, role, permission):
        required = permission.value if permission is not None else str(role and role.value)
        logger.info(
            "project_access_denied",
            project_id=str(project_id),
            user_id=str(user_id),
            required=required,
        )
        raise HTTPException(status_code=403, detail=f"'{required}' access required")

    request.state.user_id = user_id
    request.state.project_id = project_id
    await memberships.record_access(project_id, user_id)
    return access


def require_project_role(min_role: Role) -> Callable[..., Any]:
    """Dependency to require at least ``min_role`` in the path's project.

    Usage:
        @router.delete("/{project_id}")
        async def delete_project(access: AdminAccess):
            ...
    """

    async def role_checker(
        request: Request,
        project_id: UUID,
        credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
        api_key: str | None = Security(API_KEY_HEADER),
    ) -> ProjectAccess:
        return await authorize_project(request, project_id, credentials, api_key, role=min_role)

    return role_checker


def require_project_permission(permission: Permission) -> Callable[..., Any]:
    """Dependency to require one permission in the path's project."""

    async def permission_checker(
        request: Request,
        project_id: UUID,
        credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
        api_key: str | None = Security(API_KEY_HEADER),
    ) -> ProjectAccess:
        return await authorize_project(
            request, project_id, credentials, api_key, permission=permission
        )

    return permission_checker


# Common role dependencies for convenience
ViewerAccess = Annotated[ProjectAccess, Depends(require_project_role(Role.VIEWER))]
UserAccess = Annotated[ProjectAccess, Depends(require_project_role(Role.USER))]
EditorAccess = Annotated[ProjectAccess, Depends(require_project_role(Role.EDITOR))]
AdminAccess = Annotated[ProjectAccess, Depends(require_project_role(Role.ADMIN))]
