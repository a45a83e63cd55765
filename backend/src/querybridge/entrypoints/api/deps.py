"""Dependency injection and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import Request

from querybridge.adapters.auth import PostgresApiKeyRepository, PostgresAuthRepository
from querybridge.adapters.datasource import (
    ConnectionBroker,
    ConnectionConfigCipher,
    build_default_registry,
)
from querybridge.adapters.db.app_db import AppDatabase
from querybridge.adapters.llm import AnthropicTranslator, StubTranslator
from querybridge.adapters.notifications import EmailConfig, EmailNotifier
from querybridge.adapters.projects import DatabaseCatalog, DatabasesRepository, ProjectsRepository
from querybridge.adapters.query import PostgresQueryHistoryRepository
from querybridge.adapters.rbac import MembersRepository
from querybridge.core.auth import AuthService
from querybridge.core.interfaces import QueryTranslator
from querybridge.core.projects import DatabaseRegistryService, ProjectService
from querybridge.core.query import QueryGateway
from querybridge.core.rbac import MembershipService

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.app_database_url = os.getenv(
            "APP_DATABASE_URL", "postgresql://localhost:5432/querybridge"
        )
        self.auto_create_schema = _env_bool("AUTO_CREATE_SCHEMA")
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "dev-secret-change-in-production")
        self.encryption_key = os.getenv("ENCRYPTION_KEY", "")

        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY", "")
        self.llm_model = os.getenv("LLM_MODEL", "claude-sonnet-4-20250514")

        # Timeouts
        self.connect_timeout_seconds = float(os.getenv("CONNECT_TIMEOUT_SECONDS", "10"))
        self.query_timeout_seconds = float(os.getenv("QUERY_TIMEOUT_SECONDS", "30"))
        self.ai_timeout_seconds = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

        # Email
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER") or None
        self.smtp_password = os.getenv("SMTP_PASSWORD") or None
        self.smtp_from = os.getenv("SMTP_FROM", "no-reply@querybridge.local")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

        self.cors_origins = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin
        ]


settings = Settings()


def build_translator(config: Settings) -> QueryTranslator:
    """Anthropic translator when a key is configured, the stub otherwise."""
    if not config.anthropic_api_key:
        logger.warning("anthropic_api_key_missing_translation_disabled")
        return StubTranslator()
    return AnthropicTranslator(api_key=config.anthropic_api_key, model=config.llm_model)


def build_email_notifier(config: Settings) -> EmailNotifier | None:
    """SMTP notifier, or None when no host is configured."""
    if not config.smtp_host:
        return None
    return EmailNotifier(
        EmailConfig(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            smtp_user=config.smtp_user,
            smtp_password=config.smtp_password,
            from_email=config.smtp_from,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    Every service is built once here and shared through ``app.state``.
    On shutdown the broker closes its cached handles before the
    application pool goes away.
    """
    app_db = AppDatabase(settings.app_database_url)
    await app_db.connect()
    if settings.auto_create_schema:
        await app_db.create_schema()

    cipher = ConnectionConfigCipher(settings.encryption_key)
    registry = build_default_registry()
    broker = ConnectionBroker(
        DatabaseCatalog(app_db, cipher),
        registry,
        connect_timeout_seconds=settings.connect_timeout_seconds,
    )

    app.state.settings = settings
    app.state.app_db = app_db
    app.state.broker = broker
    app.state.membership_service = MembershipService(app_db, MembersRepository)
    app.state.project_service = ProjectService(app_db, ProjectsRepository, MembersRepository)
    app.state.database_service = DatabaseRegistryService(
        app_db, DatabasesRepository, cipher, broker, registry.build_config
    )
    app.state.query_gateway = QueryGateway(
        broker,
        PostgresQueryHistoryRepository(app_db),
        translator=build_translator(settings),
        query_timeout_seconds=settings.query_timeout_seconds,
        translate_timeout_seconds=settings.ai_timeout_seconds,
    )
    app.state.auth_service = AuthService(
        PostgresAuthRepository(app_db),
        email_sender=build_email_notifier(settings),
        frontend_url=settings.frontend_url,
        jwt_secret=settings.jwt_secret_key,
    )
    app.state.api_keys = PostgresApiKeyRepository(app_db)

    logger.info("app_started", engines=[t["type"] for t in registry.list_types()])

    try:
        yield
    finally:
        closed = await broker.shutdown_all()
        await app_db.close()
        logger.info("app_stopped", handles_closed=closed)


def get_app_db(request: Request) -> AppDatabase:
    """Get the application database from app state."""
    app_db: AppDatabase = request.app.state.app_db
    return app_db


def get_membership_service(request: Request) -> MembershipService:
    """Get the membership service from app state."""
    service: MembershipService = request.app.state.membership_service
    return service


def get_project_service(request: Request) -> ProjectService:
    """Get the project service from app state."""
    service: ProjectService = request.app.state.project_service
    return service


def get_database_service(request: Request) -> DatabaseRegistryService:
    """Get the database registry service from app state."""
    service: DatabaseRegistryService = request.app.state.database_service
    return service


def get_query_gateway(request: Request) -> QueryGateway:
    """Get the query gateway from app state."""
    gateway: QueryGateway = request.app.state.query_gateway
    return gateway


def get_auth_service(request: Request) -> AuthService:
    """Get the auth service from app state."""
    service: AuthService = request.app.state.auth_service
    return service


def get_api_key_repository(request: Request) -> PostgresApiKeyRepository:
    """Get the API key repository from app state."""
    repo: PostgresApiKeyRepository = request.app.state.api_keys
    return repo
