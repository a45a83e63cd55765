"""Auth domain types and utilities."""

from querybridge.core.auth.jwt import create_access_token, decode_token
from querybridge.core.auth.password import hash_password, verify_password
from querybridge.core.auth.repository import AuthRepository
from querybridge.core.auth.service import AuthService
from querybridge.core.auth.types import StoredRefreshToken, TokenPayload, User

__all__ = [
    "User",
    "TokenPayload",
    "StoredRefreshToken",
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_token",
    "AuthRepository",
    "AuthService",
]
