"""Project, database registry and activity persistence."""

from querybridge.adapters.projects.catalog import DatabaseCatalog
from querybridge.adapters.projects.databases_repository import DatabasesRepository
from querybridge.adapters.projects.projects_repository import ProjectsRepository

__all__ = ["DatabaseCatalog", "DatabasesRepository", "ProjectsRepository"]
