"""
One-time passcode challenges for email verification and password reset.

A challenge lives on the account document and moves through
``NoChallenge → Issued → {Consumed | Expired | AttemptsExhausted}``.
Only the argon2 hash of the code is persisted. Each verification first
reserves an attempt with an atomic conditional ``$inc``; the comparison runs
only after the reservation is stored, so concurrent guesses share one attempt counter.
Expired or exhausted challenges stay inert until the next ``issue``
overwrites them.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from config import OTPSettings
from errors import (
    EmailDeliveryError,
    NotFoundError,
    OtpAttemptsExhaustedError,
    OtpExpiredError,
    OtpIncorrectError,
    OtpNotFoundError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc, OtpPurpose
from shared.crypto import SecretHasher
from shared.datetime_utils import utc_now
from shared.generators import generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)

NO_CHALLENGE_MESSAGE = "There is no registered OTP to match! Please generate a new OTP."


class VerificationService:
    def __init__(
        self,
        repository: AccountRepository,
        hasher: SecretHasher,
        email_provider: EmailProvider,
        settings: OTPSettings,
        clock: Callable[[], datetime] = utc_now,
        code_generator: Callable[[int], str] = generate_otp_code,
    ) -> None:
        self._repo = repository
        self._hasher = hasher
        self._email = email_provider
        self._settings = settings
        self._clock = clock
        self._generate = code_generator

    async def issue(self, account: AccountDoc, purpose: OtpPurpose) -> AccountDoc:
        """Start a new challenge for *account* and mail the code.

        Any previous challenge is overwritten and the attempt counter reset.
        The challenge is persisted before delivery; a delivery failure raises
        EmailDeliveryError and leaves the challenge in place.
        """
        code = self._generate(self._settings.otp_length)
        expires_at = self._clock() + timedelta(seconds=self._settings.otp_ttl_seconds)

        updated = await self._repo.start_challenge(
            account.id, self._hasher.hash(code), purpose, expires_at
        )
        if updated is None:
            raise NotFoundError("User does not exist!")

        log.info(
            "otp_issued",
            account_id=str(account.id),
            purpose=purpose,
            expires_at=expires_at.isoformat(),
        )

        sent = await self._email.send_otp_email(
            updated.email, updated.full_name, code, purpose
        )
        if not sent:
            log.error("otp_delivery_failed", account_id=str(account.id), purpose=purpose)
            raise EmailDeliveryError(
                "Failed to send the OTP email! Please request a new OTP."
            )
        return updated

    async def verify(
        self, account: AccountDoc, presented_otp: str, purpose: OtpPurpose
    ) -> AccountDoc:
        """Check *presented_otp* against the outstanding challenge.

        Returns the account with the challenge cleared.

        Raises:
            OtpNotFoundError: no challenge for this purpose, or it was
                consumed by a concurrent request.
            OtpExpiredError: the challenge's expiry has passed.
            OtpAttemptsExhaustedError: every allowed attempt is used up, whatever
                the presented code.
            OtpIncorrectError: the code does not match (attempt consumed).
        """
        account_id = str(account.id)
        current = await self._repo.get_by_id(account.id)
        if current is None or not current.has_challenge or current.otp_purpose != purpose:
            log.warning("otp_verification_failed", account_id=account_id, reason="no_challenge")
            raise OtpNotFoundError(NO_CHALLENGE_MESSAGE)

        if self._clock() > current.otp_expiry:
            log.warning("otp_verification_failed", account_id=account_id, reason="expired")
            raise OtpExpiredError("OTP has expired! Request a new OTP.")

        challenge_hash = current.active_otp_hash
        reserved = await self._repo.reserve_otp_attempt(
            account.id, challenge_hash, self._settings.otp_max_attempts
        )
        if reserved is None:
            latest = await self._repo.get_by_id(account.id)
            if latest is None or latest.active_otp_hash != challenge_hash:
                raise OtpNotFoundError(NO_CHALLENGE_MESSAGE)
            log.warning(
                "otp_verification_failed", account_id=account_id, reason="max_attempts"
            )
            raise OtpAttemptsExhaustedError(
                "Too many failed attempts! Generate a new OTP."
            )

        if not self._hasher.verify((presented_otp or "").strip(), challenge_hash):
            log.warning(
                "otp_verification_failed",
                account_id=account_id,
                reason="mismatch",
                attempts=reserved.otp_attempts,
            )
            raise OtpIncorrectError("Incorrect OTP! Verification failed.")

        consumed = await self._repo.consume_challenge(account.id, challenge_hash)
        if consumed is None:
            raise OtpNotFoundError(NO_CHALLENGE_MESSAGE)

        log.info("otp_verified", account_id=account_id, purpose=purpose)
        return consumed
