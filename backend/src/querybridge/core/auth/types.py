"""Auth domain types."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """A registered user."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str
    phone: str | None = None
    document_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    password_hash: str | None = None
    is_active: bool = True
    email_verified: bool = False
    last_login_at: datetime | None = None
    created_at: datetime

    @property
    def display_name(self) -> str | None:
        """First and last name joined, if either is set."""
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or None

    def public_dict(self) -> dict[str, object]:
        """User fields safe to return to API callers."""
        return {
            "id": str(self.id),
            "email": self.email,
            "phone": self.phone,
            "document_id": self.document_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email_verified": self.email_verified,
        }


class TokenPayload(BaseModel):
    """Decoded access token claims."""

    sub: str
    email: str = ""
    exp: int
    iat: int


class StoredRefreshToken(BaseModel):
    """A refresh token row; the plaintext is never stored."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    token_hash: str
    expires_at: datetime
    revoked_at: datetime | None = None
