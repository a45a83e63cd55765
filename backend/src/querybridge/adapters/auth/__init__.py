"""Credential, session and API key persistence."""

from querybridge.adapters.auth.api_keys import PostgresApiKeyRepository, generate_api_key
from querybridge.adapters.auth.postgres import PostgresAuthRepository

__all__ = ["PostgresApiKeyRepository", "PostgresAuthRepository", "generate_api_key"]
