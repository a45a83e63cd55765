"""API middleware."""

from querybridge.entrypoints.api.middleware.auth import ApiKeyContext, verify_api_key
from querybridge.entrypoints.api.middleware.jwt_auth import JwtContext, verify_jwt
from querybridge.entrypoints.api.middleware.project_access import (
    AdminAccess,
    EditorAccess,
    ProjectAccess,
    UserAccess,
    ViewerAccess,
    require_project_permission,
    require_project_role,
)

__all__ = [
    # API Key auth
    "ApiKeyContext",
    "verify_api_key",
    # JWT auth
    "JwtContext",
    "verify_jwt",
    # Project access
    "ProjectAccess",
    "require_project_role",
    "require_project_permission",
    "ViewerAccess",
    "UserAccess",
    "EditorAccess",
    "AdminAccess",
]
