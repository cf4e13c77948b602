"""
Session lifecycle — login, refresh rotation, logout, password change and
per-request access-token authentication.

Session truth lives on the account document: the argon2 hash of the single
valid refresh token and ``password_changed_at``. Any token issued before the
latest password change is stale, whatever its expiry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from errors import (
    AuthenticationError,
    ConflictError,
    IncorrectOldPasswordError,
    InvalidCredentialsError,
    NotFoundError,
    RevokedTokenError,
    StalePasswordError,
    ValidationError,
)
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc
from services.token_codec import TokenCodec, TokenKind
from shared.crypto import SecretHasher
from shared.datetime_utils import to_epoch_millis, utc_now
from shared.logging import get_logger
from shared.validators import validate_password

log = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Incorrect username/email or password!"
STALE_PASSWORD_MESSAGE = "User changed password after issuing this token! Please login again."
REVOKED_MESSAGE = "Refresh token is no longer valid! Please login again."


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def require_strong_password(password: str, field: str = "password") -> None:
    is_valid, missing = validate_password(password)
    if not is_valid:
        raise ValidationError(
            "Password does not meet requirements",
            field=field,
            details={"missing_requirements": missing},
        )


def is_stale(issued_at: datetime, account: AccountDoc) -> bool:
    """True when a token issued at *issued_at* does not postdate the last password change."""
    if account.password_changed_at is None:
        return False
    return to_epoch_millis(issued_at) <= to_epoch_millis(account.password_changed_at)


def issue_time(account: AccountDoc, now: datetime) -> datetime:
    """Issue time for a new token: *now*, but never at or before the last password change."""
    if account.password_changed_at is None:
        return now
    return max(now, account.password_changed_at + timedelta(milliseconds=1))


class SessionService:
    def __init__(
        self,
        repository: AccountRepository,
        codec: TokenCodec,
        password_hasher: SecretHasher,
        token_hasher: SecretHasher,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._codec = codec
        self._passwords = password_hasher
        self._tokens = token_hasher
        self._clock = clock

    async def login(self, identifier: str, password: str) -> tuple[AccountDoc, TokenPair]:
        account = await self._repo.get_by_identifier(identifier)
        if account is None:
            self._passwords.verify_dummy(password)
            log.warning("login_failed", reason="invalid_credentials", account_exists=False)
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        if not self._passwords.verify(password, account.password_hash):
            log.warning("login_failed", reason="invalid_credentials", account_id=str(account.id))
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        verified_hash = account.password_hash
        if self._passwords.needs_rehash(verified_hash):
            upgraded = self._passwords.hash(password)
            if await self._repo.rehash_password(account.id, verified_hash, upgraded):
                verified_hash = upgraded
                log.info("password_rehashed", account_id=str(account.id))

        pair = self._issue_pair(account)
        if not await self._repo.set_refresh_token_hash(
            account.id, self._tokens.hash(pair.refresh_token), verified_hash
        ):
            # The password changed after it was checked
            log.warning("login_failed", reason="password_changed", account_id=str(account.id))
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        log.info("login_success", account_id=str(account.id))
        return account, pair

    async def refresh(self, presented_refresh_token: str) -> tuple[AccountDoc, TokenPair]:
        """Rotate a refresh token; the presented one becomes unusable."""
        claims = self._codec.verify(presented_refresh_token, TokenKind.REFRESH)

        account = await self._repo.get_by_id(claims.account_id)
        if account is None:
            log.warning("refresh_failed", reason="account_missing", account_id=claims.account_id)
            raise RevokedTokenError(REVOKED_MESSAGE)

        if is_stale(claims.issued_at, account):
            log.warning("refresh_failed", reason="stale_password", account_id=claims.account_id)
            raise StalePasswordError(STALE_PASSWORD_MESSAGE)

        stored_hash = account.refresh_token_hash
        if not stored_hash or not self._tokens.verify(presented_refresh_token, stored_hash):
            log.warning("refresh_failed", reason="revoked", account_id=claims.account_id)
            raise RevokedTokenError(REVOKED_MESSAGE)

        pair = self._issue_pair(account)
        rotated = await self._repo.rotate_refresh_token_hash(
            account.id, stored_hash, self._tokens.hash(pair.refresh_token)
        )
        if not rotated:
            # A concurrent refresh or logout replaced the hash first
            log.warning("refresh_failed", reason="lost_rotation", account_id=claims.account_id)
            raise RevokedTokenError(REVOKED_MESSAGE)

        log.info("refresh_rotated", account_id=claims.account_id)
        return account, pair

    async def logout(self, account: AccountDoc) -> None:
        if not await self._repo.clear_refresh_token_hash(account.id):
            raise NotFoundError("User does not exist!")
        log.info("logout", account_id=str(account.id))

    async def change_password(
        self, account: AccountDoc, old_password: str, new_password: str
    ) -> AccountDoc:
        current = await self._repo.get_by_id(account.id)
        if current is None:
            raise NotFoundError("User does not exist!")

        if not self._passwords.verify(old_password, current.password_hash):
            log.warning("password_change_failed", reason="incorrect_old_password", account_id=str(account.id))
            raise IncorrectOldPasswordError("Incorrect old password!")

        require_strong_password(new_password, field="new_password")
        return await self.replace_password(current, new_password)

    async def replace_password(self, account: AccountDoc, new_password: str) -> AccountDoc:
        """Store a new password hash and revoke every session issued before now.

        The write is conditioned on the hash *account* was loaded with, so two
        concurrent changes cannot both succeed.
        """
        updated = await self._repo.update_password(
            account.id,
            expected_hash=account.password_hash,
            new_hash=self._passwords.hash(new_password),
            changed_at=issue_time(account, self._clock()),
        )
        if updated is None:
            raise ConflictError("Password was changed by another request! Please try again.")
        log.info("password_changed", account_id=str(account.id))
        return updated

    async def authenticate(self, access_token: str) -> AccountDoc:
        """Resolve the account behind an access token, rejecting stale tokens."""
        claims = self._codec.verify(access_token, TokenKind.ACCESS)

        account = await self._repo.get_by_id(claims.account_id)
        if account is None:
            raise AuthenticationError("The user belonging to this token no longer exists!")

        if is_stale(claims.issued_at, account):
            raise StalePasswordError(STALE_PASSWORD_MESSAGE)
        return account

    def _issue_pair(self, account: AccountDoc) -> TokenPair:
        account_id = str(account.id)
        issued_at = issue_time(account, self._clock())
        return TokenPair(
            access_token=self._codec.issue_access(
                account_id, account.access_claims(), issued_at=issued_at
            ),
            refresh_token=self._codec.issue_refresh(account_id, issued_at=issued_at),
        )
