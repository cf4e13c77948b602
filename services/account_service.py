"""
Account flows built on the session and verification services:
registration, email verification and password reset.

The OTP state machine only answers "was the code right"; the effect of a
verified code (flag the email as verified, hand out a reset grant) is
applied here as a separate step.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from errors import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    NotFoundError,
    OtpNotFoundError,
    StalePasswordError,
    ValidationError,
)
from repositories.account_repository import AccountRepository
from schemas.models.account import (
    OTP_PURPOSE_EMAIL_VERIFY,
    OTP_PURPOSE_PASSWORD_RESET,
    AccountDoc,
)
from services.session_service import (
    SessionService,
    is_stale,
    issue_time,
    require_strong_password,
)
from services.token_codec import TokenCodec, TokenKind
from services.verification_service import NO_CHALLENGE_MESSAGE, VerificationService
from shared.crypto import SecretHasher
from shared.datetime_utils import utc_now
from shared.logging import get_logger
from shared.validators import (
    normalize_email,
    validate_email,
    validate_full_name,
    validate_username,
)

log = get_logger(__name__)

INVALID_NAME_MESSAGE = (
    "This name is not accepted! Full names must contain at least two "
    "letters and should not contain digits or special characters."
)


class AccountService:
    def __init__(
        self,
        repository: AccountRepository,
        sessions: SessionService,
        verification: VerificationService,
        codec: TokenCodec,
        password_hasher: SecretHasher,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._sessions = sessions
        self._verification = verification
        self._codec = codec
        self._passwords = password_hasher
        self._clock = clock

    async def register(
        self, username: str, full_name: str, email: str, password: str
    ) -> AccountDoc:
        username = username.strip()
        full_name = full_name.strip()
        email = normalize_email(email)

        if not validate_full_name(full_name):
            raise ValidationError(INVALID_NAME_MESSAGE, field="full_name")
        if not validate_username(username):
            raise ValidationError(
                "This username is not accepted! Usernames must have length between "
                "3-20 and special characters are not allowed.",
                field="username",
            )
        if not validate_email(email):
            raise ValidationError("Invalid Email Address!", field="email")
        require_strong_password(password)

        if await self._repo.username_exists(username):
            raise ConflictError("This username is already taken!", field="username")
        if await self._repo.email_exists(email):
            raise ConflictError("This email address is already registered!", field="email")

        account = await self._repo.insert(
            AccountDoc(
                username=username,
                full_name=full_name,
                email=email,
                password_hash=self._passwords.hash(password),
            )
        )
        log.info("account_registered", account_id=str(account.id))
        return account

    # ── Profile ──────────────────────────────────────────────────────────────

    async def get_public_profile(self, account_id: str) -> AccountDoc:
        account = await self._repo.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Invalid user ID or user does not exist!")
        return account

    async def change_name(self, account: AccountDoc, new_full_name: str) -> AccountDoc:
        new_full_name = new_full_name.strip()
        if not validate_full_name(new_full_name):
            raise ValidationError(INVALID_NAME_MESSAGE, field="new_full_name")

        updated = await self._repo.update_full_name(account.id, new_full_name)
        if updated is None:
            raise NotFoundError("User does not exist!")
        log.info("full_name_changed", account_id=str(account.id))
        return updated

    # ── Email verification ───────────────────────────────────────────────────

    async def request_email_verification(self, account: AccountDoc) -> AccountDoc:
        if account.email_verified:
            raise ValidationError("Email address is already verified!")
        return await self._verification.issue(account, OTP_PURPOSE_EMAIL_VERIFY)

    async def verify_email(self, account: AccountDoc, code: str) -> AccountDoc:
        if account.email_verified:
            raise ValidationError("Email address is already verified!")
        await self._verification.verify(account, code, OTP_PURPOSE_EMAIL_VERIFY)

        verified = await self._repo.mark_email_verified(account.id)
        if verified is None:
            raise OtpNotFoundError(NO_CHALLENGE_MESSAGE)
        log.info("email_verified", account_id=str(account.id))
        return verified

    # ── Password reset ───────────────────────────────────────────────────────

    async def request_password_reset(self, email: str) -> None:
        """Send a reset OTP if *email* is registered.

        Reports nothing back either way so the endpoint cannot be used to
        discover which addresses are registered.
        """
        account = await self._repo.get_by_email(normalize_email(email))
        if account is None:
            self._passwords.verify_dummy(email)
            log.warning("password_reset_requested_nonexistent")
            return
        try:
            await self._verification.issue(account, OTP_PURPOSE_PASSWORD_RESET)
        except EmailDeliveryError:
            # Still report success for security
            log.error("password_reset_email_send_failed", account_id=str(account.id))

    async def verify_password_reset(self, email: str, code: str) -> str:
        """Consume a reset OTP and return a short-lived reset grant."""
        account = await self._repo.get_by_email(normalize_email(email))
        if account is None:
            self._passwords.verify_dummy(code)
            raise OtpNotFoundError(NO_CHALLENGE_MESSAGE)
        await self._verification.verify(account, code, OTP_PURPOSE_PASSWORD_RESET)
        log.info("password_reset_otp_verified", account_id=str(account.id))
        return self._codec.issue_reset(
            str(account.id), issued_at=issue_time(account, self._clock())
        )

    async def reset_password(self, reset_token: str, new_password: str) -> AccountDoc:
        claims = self._codec.verify(reset_token, TokenKind.RESET)
        require_strong_password(new_password, field="new_password")

        account = await self._repo.get_by_id(claims.account_id)
        if account is None:
            raise AuthenticationError("User does not exist!")
        if is_stale(claims.issued_at, account):
            # A grant is spent by the password change it makes
            raise StalePasswordError("This password reset has already been used! Request a new OTP.")

        updated = await self._sessions.replace_password(account, new_password)
        log.info("password_reset_completed", account_id=str(account.id))
        return updated
