"""Encryption of stored connection configs."""

from __future__ import annotations

import json
from typing import Any

import structlog
from cryptography.fernet import Fernet, InvalidToken

from querybridge.core.projects.types import ConnectionConfig

logger = structlog.get_logger()


class ConnectionConfigCipher:
    """Fernet encryption for connection configs at rest."""

    def __init__(self, key: str | bytes | None) -> None:
        """Initialize with a Fernet key, generating an ephemeral one if absent."""
        if not key:
            logger.warning("encryption_key_missing_using_ephemeral_key")
            key = Fernet.generate_key()
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, config: ConnectionConfig) -> str:
        """Encrypt a config for storage."""
        return self._fernet.encrypt(json.dumps(config.to_storage()).encode()).decode()

    def decrypt(self, token: str) -> ConnectionConfig:
        """Decrypt a stored config.

        Raises:
            ValueError: If the token was not produced with this key.
        """
        try:
            raw: dict[str, Any] = json.loads(self._fernet.decrypt(token.encode()).decode())
        except InvalidToken as e:
            raise ValueError("Connection config could not be decrypted") from e
        return ConnectionConfig.model_validate(raw)
