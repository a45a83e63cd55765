"""Auth API routes for login, registration, and token refresh."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from querybridge.core.auth import AuthService
from querybridge.core.auth.password import MIN_PASSWORD_LENGTH
from querybridge.core.rbac import MembershipService
from querybridge.entrypoints.api.deps import get_auth_service, get_membership_service
from querybridge.entrypoints.api.middleware.jwt_auth import JwtContext, verify_jwt

router = APIRouter(prefix="/auth", tags=["auth"])

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


# Request/Response models
class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=32)
    document_id: str | None = Field(None, max_length=64)


class LoginRequest(BaseModel):
    """Login request body. ``identifier`` is an email, phone or document id."""

    identifier: str = Field(..., min_length=1)
    password: str


class RefreshRequest(BaseModel):
    """Token refresh request body."""

    refresh_token: str


class TokenResponse(BaseModel):
    """Token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: dict[str, Any]


class EmailRequest(BaseModel):
    """Body carrying only an email address."""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Password reset confirmation body."""

    token: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class TokenRequest(BaseModel):
    """Body carrying a single-use token."""

    token: str


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(body: RegisterRequest, service: AuthServiceDep) -> TokenResponse:
    """Register a new user and sign them in."""
    result = await service.register(
        email=body.email,
        password=body.password,
        document_id=body.document_id,
        phone=body.phone,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return TokenResponse(**result)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, service: AuthServiceDep) -> TokenResponse:
    """Authenticate user and return tokens."""
    result = await service.login(identifier=body.identifier, password=body.password)
    return TokenResponse(**result)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, service: AuthServiceDep) -> TokenResponse:
    """Exchange a refresh token for a new token pair."""
    result = await service.refresh(body.refresh_token)
    return TokenResponse(**result)


@router.post("/logout", response_model=MessageResponse)
async def logout(body: RefreshRequest, service: AuthServiceDep) -> MessageResponse:
    """Revoke a refresh token."""
    await service.logout(body.refresh_token)
    return MessageResponse(message="Logged out")


@router.get("/me")
async def get_current_user(
    auth: Annotated[JwtContext, Depends(verify_jwt)],
    service: AuthServiceDep,
    memberships: Annotated[MembershipService, Depends(get_membership_service)],
) -> dict[str, Any]:
    """Get the signed-in user and the projects they belong to."""
    user = await service.get_user(auth.user_uuid)
    return {
        "user": user.public_dict(),
        "projects": await memberships.list_user_memberships(user.id),
    }


@router.post("/password-reset/request", response_model=MessageResponse)
async def request_password_reset(body: EmailRequest, service: AuthServiceDep) -> MessageResponse:
    """Send a reset link if the account exists.

    The response is the same whether or not the email is registered.
    """
    await service.request_password_reset(body.email)
    return MessageResponse(message="If that email is registered, a reset link has been sent")


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    body: PasswordResetConfirm, service: AuthServiceDep
) -> MessageResponse:
    """Set a new password using a reset token."""
    await service.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password has been reset")


@router.post("/verify-email/request", response_model=MessageResponse)
async def request_verification(body: EmailRequest, service: AuthServiceDep) -> MessageResponse:
    """Resend the verification link."""
    await service.request_verification(body.email)
    return MessageResponse(message="If that email needs verifying, a link has been sent")


@router.post("/verify-email/confirm", response_model=MessageResponse)
async def confirm_verification(body: TokenRequest, service: AuthServiceDep) -> MessageResponse:
    """Mark an email address verified."""
    await service.verify_email(body.token)
    return MessageResponse(message="Email verified")
