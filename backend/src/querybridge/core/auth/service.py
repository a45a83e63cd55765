"""Auth service for registration, login, sessions and account recovery."""

import asyncio
from functools import partial
from typing import Any
from uuid import UUID

import structlog

from querybridge.core.auth.jwt import create_access_token
from querybridge.core.auth.password import hash_password, verify_password
from querybridge.core.auth.repository import AuthRepository
from querybridge.core.auth.tokens import (
    REFRESH_TOKEN_EXPIRY,
    RESET_TOKEN_EXPIRY,
    VERIFICATION_TOKEN_EXPIRY,
    generate_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
)
from querybridge.core.auth.types import User
from querybridge.core.exceptions import (
    AccountInactiveError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    UserNotFoundError,
)
from querybridge.core.interfaces import EmailSender

logger = structlog.get_logger()


class AuthService:
    """Service for authentication operations.

    Access tokens are short-lived JWTs. Refresh tokens are opaque, stored
    hashed, and rotated on every use: the presented token is revoked and a
    new one issued, so a replayed token is rejected.
    """

    def __init__(
        self,
        repo: AuthRepository,
        email_sender: EmailSender | None = None,
        frontend_url: str = "http://localhost:3000",
        jwt_secret: str | None = None,
    ) -> None:
        """Initialize with auth repository.

        Args:
            repo: Auth repository for database operations.
            email_sender: Delivers reset and verification links, if configured.
            frontend_url: Base URL for links sent by email.
            jwt_secret: Access token signing key.
        """
        self._repo = repo
        self._email = email_sender
        self._frontend_url = frontend_url.rstrip("/")
        self._jwt_secret = jwt_secret

    async def register(
        self,
        email: str,
        password: str,
        document_id: str | None = None,
        phone: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> dict[str, Any]:
        """Register a new user and open a session.

        Raises:
            EmailAlreadyRegisteredError: Email, phone or document id is taken.
        """
        email = email.strip().lower()
        conflict = await self._repo.find_conflicting_field(email, phone, document_id)
        if conflict:
            raise EmailAlreadyRegisteredError(conflict)

        user = await self._repo.create_user(
            email=email,
            password_hash=hash_password(password),
            phone=phone,
            document_id=document_id,
            first_name=first_name,
            last_name=last_name,
        )
        logger.info("user_registered", user_id=str(user.id))

        await self.request_verification(user.email)
        return await self._issue_session(user)

    async def login(self, identifier: str, password: str) -> dict[str, Any]:
        """Authenticate by email, phone or document id.

        Raises:
            InvalidCredentialsError: Unknown identifier or wrong password.
            AccountInactiveError: The account is disabled.
        """
        user = await self._repo.get_user_by_identifier(identifier.strip())
        if not user or not verify_password(password, user.password_hash):
            logger.info("login_failed")
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountInactiveError()

        await self._repo.touch_last_login(user.id)
        logger.info("user_logged_in", user_id=str(user.id))
        return await self._issue_session(user)

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Rotate a refresh token and issue a new access token.

        Raises:
            TokenInvalidError: Unknown or already revoked token.
            TokenExpiredError: Token is past its expiry.
            AccountInactiveError: The account was disabled.
        """
        stored = await self._repo.get_refresh_token(hash_token(refresh_token))
        if stored is None or stored.revoked_at is not None:
            raise TokenInvalidError("Invalid refresh token")
        if is_token_expired(stored.expires_at):
            raise TokenExpiredError("Refresh token has expired")

        # A concurrent rotation of the same token loses here
        if not await self._repo.revoke_refresh_token(stored.id):
            raise TokenInvalidError("Invalid refresh token")

        user = await self._repo.get_user_by_id(stored.user_id)
        if not user:
            raise TokenInvalidError("Invalid refresh token")
        if not user.is_active:
            raise AccountInactiveError()

        return await self._issue_session(user)

    async def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Unknown tokens are ignored."""
        stored = await self._repo.get_refresh_token(hash_token(refresh_token))
        if stored is not None and stored.revoked_at is None:
            await self._repo.revoke_refresh_token(stored.id)
            logger.info("user_logged_out", user_id=str(stored.user_id))

    async def get_user(self, user_id: UUID) -> User:
        """Get an active user.

        Raises:
            UserNotFoundError: Missing user.
            AccountInactiveError: The account is disabled.
        """
        user = await self._repo.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        if not user.is_active:
            raise AccountInactiveError()
        return user

    async def request_password_reset(self, email: str) -> None:
        """Email a reset link.

        For security, this always succeeds (doesn't reveal if email exists).
        """
        user = await self._repo.get_user_by_email(email.strip().lower())
        if not user or not user.is_active:
            logger.info("password_reset_requested_unknown_email")
            return

        token = generate_token()
        await self._repo.set_password_reset_token(
            user.id, hash_token(token), get_token_expiry(RESET_TOKEN_EXPIRY)
        )

        reset_url = f"{self._frontend_url}/password-reset/confirm?token={token}"
        self._send_in_background(
            [user.email],
            "Reset your password",
            f'<p>Reset your password: <a href="{reset_url}">{reset_url}</a></p>'
            "<p>This link expires in one hour.</p>",
            f"Reset your password: {reset_url}\n\nThis link expires in one hour.",
        )
        logger.info("password_reset_requested", user_id=str(user.id))

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password with a reset token and end every session.

        Raises:
            TokenInvalidError: Unknown or already used token.
            TokenExpiredError: Token is past its expiry.
        """
        found = await self._repo.get_user_by_reset_token(hash_token(token))
        if not found:
            logger.warning("password_reset_invalid_token")
            raise TokenInvalidError("Invalid or expired reset link")

        user, expires_at = found
        if is_token_expired(expires_at):
            logger.warning("password_reset_token_expired", user_id=str(user.id))
            raise TokenExpiredError("This reset link has expired")

        await self._repo.update_password(user.id, hash_password(new_password))
        revoked = await self._repo.revoke_user_refresh_tokens(user.id)
        logger.info("password_reset_successful", user_id=str(user.id), sessions_revoked=revoked)

    async def request_verification(self, email: str) -> None:
        """Email a verification link. Silent for unknown or verified emails."""
        user = await self._repo.get_user_by_email(email.strip().lower())
        if not user or user.email_verified:
            return

        token = generate_token()
        await self._repo.set_verification_token(
            user.id, hash_token(token), get_token_expiry(VERIFICATION_TOKEN_EXPIRY)
        )

        verify_url = f"{self._frontend_url}/verify-email?token={token}"
        self._send_in_background(
            [user.email],
            "Verify your email address",
            f'<p>Confirm your email address: <a href="{verify_url}">{verify_url}</a></p>',
            f"Confirm your email address: {verify_url}",
        )

    async def verify_email(self, token: str) -> None:
        """Mark the token holder's email verified.

        Raises:
            TokenInvalidError: Unknown token.
            TokenExpiredError: Token is past its expiry.
        """
        found = await self._repo.get_user_by_verification_token(hash_token(token))
        if not found:
            raise TokenInvalidError("Invalid verification token")

        user, expires_at = found
        if is_token_expired(expires_at):
            raise TokenExpiredError("Verification link has expired")

        await self._repo.mark_email_verified(user.id)
        logger.info("email_verified", user_id=str(user.id))

    async def _issue_session(self, user: User) -> dict[str, Any]:
        refresh_token = generate_token()
        await self._repo.create_refresh_token(
            user.id, hash_token(refresh_token), get_token_expiry(REFRESH_TOKEN_EXPIRY)
        )
        access_token = create_access_token(
            user_id=str(user.id), email=user.email, secret_key=self._jwt_secret
        )
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "user": user.public_dict(),
        }

    def _send_in_background(
        self, to_emails: list[str], subject: str, body_html: str, body_text: str
    ) -> None:
        """Hand an email to the default executor without awaiting delivery."""
        if self._email is None:
            logger.info("email_skipped_no_sender", subject=subject)
            return

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None, partial(self._email.send, to_emails, subject, body_html, body_text)
        )
        future.add_done_callback(partial(_log_send_outcome, subject))


def _log_send_outcome(subject: str, future: "asyncio.Future[bool]") -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("email_send_failed", subject=subject, error=str(error))
    elif not future.result():
        logger.warning("email_not_delivered", subject=subject)
