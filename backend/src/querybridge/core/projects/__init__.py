"""Projects, their registered databases, activity and versions."""

from querybridge.core.projects.databases import DatabaseRegistryService
from querybridge.core.projects.service import ProjectService, generate_slug
from querybridge.core.projects.types import (
    ActivityAction,
    ConnectionConfig,
    DatabaseType,
    EntityType,
    Project,
    ProjectDatabase,
)

__all__ = [
    "ActivityAction",
    "ConnectionConfig",
    "DatabaseRegistryService",
    "DatabaseType",
    "EntityType",
    "Project",
    "ProjectDatabase",
    "ProjectService",
    "generate_slug",
]
