"""Project, database registry, activity and version types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class DatabaseType(str, Enum):
    """Engines a project database can point at."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MONGODB = "mongodb"
    SQLITE = "sqlite"
    MSSQL = "mssql"


class ConnectionConfig(BaseModel):
    """Connection parameters for an external database.

    For sqlite, ``database`` is the file path and the network fields are
    unused.
    """

    model_config = ConfigDict(frozen=True)

    host: str | None = None
    port: int | None = None
    database: str
    username: str | None = None
    password: SecretStr | None = None
    ssl: bool = False
    options: dict[str, Any] = Field(default_factory=dict)

    def redacted(self) -> dict[str, Any]:
        """Config safe to return to API callers."""
        data = self.model_dump(exclude={"password"})
        data["has_password"] = self.password is not None
        return data

    def to_storage(self) -> dict[str, Any]:
        """Plain dict with the secret revealed, for encryption at rest."""
        data = self.model_dump(exclude={"password"})
        data["password"] = self.password.get_secret_value() if self.password else None
        return data


@dataclass
class ProjectDatabase:
    """A registered external database target."""

    id: UUID
    project_id: UUID
    name: str
    type: str
    connection_config: ConnectionConfig
    is_primary: bool = False
    is_active: bool = True
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_available(self) -> bool:
        """Whether queries may be routed to this database."""
        return self.is_active and self.deleted_at is None


@dataclass
class Project:
    """A named, slugged workspace."""

    id: UUID
    name: str
    slug: str
    created_by: UUID | None
    description: str | None = None
    is_public: bool = False
    is_active: bool = True
    settings: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    template_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class ActivityAction(str, Enum):
    """State-changing actions recorded in a project's activity log."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"
    EXPORT = "export"
    IMPORT = "import"
    EXECUTE = "execute"
    INVITE = "invite"
    JOIN = "join"
    LEAVE = "leave"


class EntityType(str, Enum):
    """Kinds of entity an activity refers to."""

    PROJECT = "project"
    MEMBER = "member"
    DATABASE = "database"
    QUERY = "query"
    VERSION = "version"
    API_KEY = "api_key"


class ProjectActivityCreate(BaseModel):
    """An activity entry to append."""

    model_config = ConfigDict(frozen=True)

    project_id: UUID
    user_id: UUID | None = None
    action: ActivityAction
    entity_type: EntityType
    entity_id: UUID | None = None
    entity_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None


class ProjectActivity(ProjectActivityCreate):
    """A stored activity entry."""

    id: UUID
    created_at: datetime


@dataclass
class ProjectVersion:
    """A snapshot of a project's metadata."""

    id: UUID
    project_id: UUID
    version: str
    is_current: bool
    snapshot: dict[str, Any]
    created_by: UUID | None
    name: str | None = None
    description: str | None = None
    created_at: datetime | None = None


def next_patch_version(current: str | None) -> str:
    """Increment the patch component of a semver string.

    No prior version yields ``1.0.0``.
    """
    if not current:
        return "1.0.0"
    major, minor, patch = (int(part) for part in current.split("."))
    return f"{major}.{minor}.{patch + 1}"
