"""SQLAlchemy models describing the application database."""

from querybridge.models.api_key import ApiKey
from querybridge.models.base import BaseModel, metadata
from querybridge.models.project import Project, ProjectActivity, ProjectMember, ProjectVersion
from querybridge.models.project_database import ProjectDatabase
from querybridge.models.query_history import QueryHistory
from querybridge.models.user import RefreshToken, User

__all__ = [
    "ApiKey",
    "BaseModel",
    "Project",
    "ProjectActivity",
    "ProjectDatabase",
    "ProjectMember",
    "ProjectVersion",
    "QueryHistory",
    "RefreshToken",
    "User",
    "metadata",
]
