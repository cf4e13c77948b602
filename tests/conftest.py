"""
Shared fixtures for the credential service tests.

The account store is a mongomock collection behind a thin async adapter, so
the repository runs its real queries (conditional updates included) without
a MongoDB server. Hashers use the cheapest argon2 profile to keep tests fast.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import mongomock
import pytest
from argon2 import profiles

from config import JWTSettings, OTPSettings
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc
from services.account_service import AccountService
from services.session_service import SessionService
from services.token_codec import TokenCodec
from services.verification_service import VerificationService
from shared.crypto import SecretHasher
from shared.datetime_utils import utc_now

TEST_JWT_SECRET = "test-secret-key-that-is-at-least-32-bytes-long"
DEFAULT_PASSWORD = "Secur3!ty"


class AsyncCollection:
    """Expose a synchronous mongomock collection through awaitable methods."""

    def __init__(self, collection) -> None:
        self.sync = collection

    def __getattr__(self, name):
        attr = getattr(self.sync, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            return attr(*args, **kwargs)

        return call


class FakeClock:
    """Controllable clock starting at the real current time."""

    def __init__(self) -> None:
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, seconds: float = 0, milliseconds: int = 0) -> None:
        self.now += timedelta(seconds=seconds, milliseconds=milliseconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def jwt_settings() -> JWTSettings:
    return JWTSettings(jwt_secret=TEST_JWT_SECRET, cookie_secure=False)


@pytest.fixture
def otp_settings() -> OTPSettings:
    return OTPSettings(otp_length=6, otp_ttl_seconds=300, otp_max_attempts=5)


@pytest.fixture
def hasher() -> SecretHasher:
    return SecretHasher(profiles.CHEAPEST)


@pytest.fixture
def accounts_collection() -> AsyncCollection:
    return AsyncCollection(mongomock.MongoClient().db.accounts)


@pytest.fixture
async def repository(accounts_collection) -> AccountRepository:
    repo = AccountRepository(accounts_collection)
    await repo.ensure_indexes()
    return repo


@pytest.fixture
def email_provider() -> AsyncMock:
    provider = AsyncMock()
    provider.send_otp_email.return_value = True
    provider.send.return_value = True
    return provider


@pytest.fixture
def codec(jwt_settings, clock) -> TokenCodec:
    return TokenCodec(jwt_settings, clock=clock)


@pytest.fixture
def session_service(repository, codec, hasher, clock) -> SessionService:
    return SessionService(
        repository, codec, password_hasher=hasher, token_hasher=hasher, clock=clock
    )


@pytest.fixture
def verification_service(
    repository, hasher, email_provider, otp_settings, clock
) -> VerificationService:
    return VerificationService(
        repository, hasher, email_provider, otp_settings, clock=clock
    )


@pytest.fixture
def account_service(
    repository, session_service, verification_service, codec, hasher, clock
) -> AccountService:
    return AccountService(
        repository,
        session_service,
        verification_service,
        codec,
        password_hasher=hasher,
        clock=clock,
    )


@pytest.fixture
def make_account(repository, hasher):
    """Insert an account and return it; keyword overrides go straight to AccountDoc."""

    async def _make(
        username: str = "alice",
        email: str = "alice@example.com",
        password: str = DEFAULT_PASSWORD,
        **overrides,
    ) -> AccountDoc:
        fields = dict(
            username=username,
            email=email,
            full_name="Alice Liddell",
            password_hash=hasher.hash(password),
        )
        fields.update(overrides)
        return await repository.insert(AccountDoc(**fields))

    return _make


@pytest.fixture
def last_otp(email_provider):
    """Return the plaintext code of the most recent send_otp_email call."""

    def _last() -> str:
        return email_provider.send_otp_email.call_args.args[2]

    return _last
