"""Query history model."""

from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from querybridge.models.base import BaseModel


class QueryHistory(BaseModel):
    """Append-only record of a query attempt."""

    __tablename__ = "query_history"
    __table_args__ = (Index("ix_query_history_project_created", "project_id", "created_at"),)

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    database_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("project_databases.id", ondelete="SET NULL")
    )
    query: Mapped[str] = mapped_column(Text, nullable=False)
    params: Mapped[list[Any]] = mapped_column(JSONB, server_default=text("'[]'::jsonb"))
    result_metadata: Mapped[dict[str, Any]] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb")
    )
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    ai_model: Mapped[str | None] = mapped_column(String(100))
