"""Project-scoped API key persistence."""

import json
import secrets
from datetime import datetime
from typing import Any
from uuid import UUID

from querybridge.adapters.db.app_db import AppDatabase
from querybridge.core.auth.tokens import hash_token

API_KEY_PREFIX = "qb_"
API_KEY_LISTING_COLUMNS = """
    id, project_id, user_id, key_prefix, name, permissions, is_active,
    last_used_at, expires_at, created_at
"""


def generate_api_key() -> tuple[str, str, str]:
    """Generate a key.

    Returns:
        Tuple of (plaintext key, display prefix, SHA-256 hash).
    """
    key = f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"
    return key, key[:12], hash_token(key)


def _normalize(row: dict[str, Any]) -> dict[str, Any]:
    permissions = row.get("permissions")
    if isinstance(permissions, str):
        row["permissions"] = json.loads(permissions)
    elif permissions is None:
        row["permissions"] = []
    return row


class PostgresApiKeyRepository:
    """API keys bound to one project and the member who created them."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    async def create(
        self,
        project_id: UUID,
        user_id: UUID,
        name: str,
        permissions: list[str],
        expires_at: datetime | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Create a key. The plaintext is returned once and never stored."""
        key, prefix, key_hash = generate_api_key()
        row = await self._db.execute_returning(
            f"""
            INSERT INTO api_keys
                (project_id, user_id, key_hash, key_prefix, name, permissions, expires_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {API_KEY_LISTING_COLUMNS}
            """,
            project_id,
            user_id,
            key_hash,
            prefix,
            name,
            json.dumps(sorted(set(permissions))),
            expires_at,
        )
        if row is None:
            raise RuntimeError("Failed to create API key")
        return key, _normalize(row)

    async def get_by_hash(self, key_hash: str) -> dict[str, Any] | None:
        """Get an active key by hash."""
        row = await self._db.fetch_one(
            f"""
            SELECT {API_KEY_LISTING_COLUMNS} FROM api_keys
            WHERE key_hash = $1 AND is_active = true
            """,
            key_hash,
        )
        return _normalize(row) if row else None

    async def touch_last_used(self, key_id: UUID) -> None:
        """Update API key last used timestamp."""
        await self._db.execute("UPDATE api_keys SET last_used_at = NOW() WHERE id = $1", key_id)

    async def list_for_project(self, project_id: UUID) -> list[dict[str, Any]]:
        """List a project's keys, newest first."""
        rows = await self._db.fetch_all(
            f"""
            SELECT {API_KEY_LISTING_COLUMNS} FROM api_keys
            WHERE project_id = $1
            ORDER BY created_at DESC
            """,
            project_id,
        )
        return [_normalize(row) for row in rows]

    async def revoke(self, project_id: UUID, key_id: UUID) -> bool:
        """Deactivate a key of the project."""
        result = await self._db.execute(
            "UPDATE api_keys SET is_active = false WHERE id = $1 AND project_id = $2",
            key_id,
            project_id,
        )
        return result.split()[-1] != "0"
