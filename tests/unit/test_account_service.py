"""Unit tests for services.account_service: registration, profile, email verification, password reset."""

from datetime import timedelta

import pytest

from errors import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    InvalidCredentialsError,
    NotFoundError,
    OtpIncorrectError,
    OtpNotFoundError,
    StalePasswordError,
    TokenExpiredError,
    TokenMalformedError,
    ValidationError,
)
from services.token_codec import TokenCodec, TokenKind
from shared.datetime_utils import utc_now

PASSWORD = "Secur3!ty"
NEW_PASSWORD = "NewPass1!"


async def _register(account_service, **overrides):
    fields = dict(
        username="alice",
        full_name="Alice Liddell",
        email="Alice@Example.com",
        password=PASSWORD,
    )
    fields.update(overrides)
    return await account_service.register(**fields)


class TestRegister:
    async def test_creates_unverified_account(self, account_service, hasher):
        account = await _register(account_service)
        assert account.id is not None
        assert account.email == "alice@example.com"
        assert account.email_verified is False
        assert hasher.verify(PASSWORD, account.password_hash)

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"full_name": "R2D2"}, "full_name"),
            ({"username": "1a"}, "username"),
            ({"email": "not-an-email"}, "email"),
            ({"password": "weakpass"}, "password"),
        ],
        ids=["full_name", "username", "email", "password"],
    )
    async def test_invalid_fields(self, account_service, overrides, field):
        with pytest.raises(ValidationError) as exc:
            await _register(account_service, **overrides)
        assert exc.value.field == field

    async def test_weak_password_lists_requirements(self, account_service):
        with pytest.raises(ValidationError) as exc:
            await _register(account_service, password="weakpass")
        assert "At least one number" in exc.value.details["missing_requirements"]

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"email": "other@example.com"}, "username"),
            ({"username": "alice2", "email": "ALICE@example.com"}, "email"),
        ],
        ids=["username_taken", "email_taken"],
    )
    async def test_conflicts(self, account_service, overrides, field):
        await _register(account_service)
        with pytest.raises(ConflictError) as exc:
            await _register(account_service, **overrides)
        assert exc.value.field == field

    async def test_registered_account_can_login(self, account_service, session_service):
        await _register(account_service)
        account, _ = await session_service.login("alice@example.com", PASSWORD)
        assert account.username == "alice"


class TestProfile:
    async def test_change_name(self, account_service, make_account, repository):
        account = await make_account()
        updated = await account_service.change_name(account, "  Alice Kingsleigh ")
        assert updated.full_name == "Alice Kingsleigh"
        assert (await repository.get_by_id(account.id)).full_name == "Alice Kingsleigh"

    @pytest.mark.parametrize("name", ["A", "Alice 2", "Alice@Home"], ids=["short", "digit", "special"])
    async def test_change_name_rejected(self, account_service, make_account, name):
        account = await make_account()
        with pytest.raises(ValidationError) as exc:
            await account_service.change_name(account, name)
        assert exc.value.field == "new_full_name"

    async def test_change_name_deleted_account(
        self, account_service, make_account, accounts_collection
    ):
        account = await make_account()
        accounts_collection.sync.delete_one({"_id": account.id})
        with pytest.raises(NotFoundError):
            await account_service.change_name(account, "Alice Kingsleigh")

    async def test_public_profile(self, account_service, make_account):
        account = await make_account()
        found = await account_service.get_public_profile(str(account.id))
        assert found.username == "alice"

    @pytest.mark.parametrize("account_id", ["507f1f77bcf86cd799439011", "nope"])
    async def test_public_profile_missing(self, account_service, account_id):
        with pytest.raises(NotFoundError):
            await account_service.get_public_profile(account_id)


class TestEmailVerification:
    async def test_flow(self, account_service, make_account, last_otp, repository):
        account = await make_account()
        await account_service.request_email_verification(account)

        verified = await account_service.verify_email(account, last_otp())
        assert verified.email_verified is True
        assert verified.has_challenge is False
        assert (await repository.get_by_id(account.id)).email_verified is True

    async def test_wrong_code_leaves_unverified(
        self, account_service, make_account, repository
    ):
        account = await make_account()
        await account_service.request_email_verification(account)
        with pytest.raises(OtpIncorrectError):
            await account_service.verify_email(account, "not-the-code")
        assert (await repository.get_by_id(account.id)).email_verified is False

    async def test_already_verified(self, account_service, make_account):
        account = await make_account(email_verified=True)
        with pytest.raises(ValidationError):
            await account_service.request_email_verification(account)
        with pytest.raises(ValidationError):
            await account_service.verify_email(account, "123456")

    async def test_delivery_failure_is_reported(
        self, account_service, make_account, email_provider
    ):
        email_provider.send_otp_email.return_value = False
        account = await make_account()
        with pytest.raises(EmailDeliveryError):
            await account_service.request_email_verification(account)

    async def test_reset_code_does_not_verify_email(
        self, account_service, make_account, last_otp
    ):
        account = await make_account()
        await account_service.request_password_reset("alice@example.com")
        with pytest.raises(OtpNotFoundError):
            await account_service.verify_email(account, last_otp())


class TestPasswordReset:
    async def _reset_token(self, account_service, last_otp) -> str:
        await account_service.request_password_reset("alice@example.com")
        return await account_service.verify_password_reset("alice@example.com", last_otp())

    async def test_full_flow(self, account_service, session_service, make_account, last_otp):
        await make_account()
        _, old_pair = await session_service.login("alice", PASSWORD)

        reset_token = await self._reset_token(account_service, last_otp)
        await account_service.reset_password(reset_token, NEW_PASSWORD)

        with pytest.raises(InvalidCredentialsError):
            await session_service.login("alice", PASSWORD)
        await session_service.login("alice", NEW_PASSWORD)
        with pytest.raises(StalePasswordError):
            await session_service.refresh(old_pair.refresh_token)

    async def test_reset_token_kind(self, account_service, make_account, last_otp, codec):
        await make_account()
        reset_token = await self._reset_token(account_service, last_otp)
        assert codec.verify(reset_token, TokenKind.RESET).kind is TokenKind.RESET

    async def test_grant_is_single_use(self, account_service, make_account, last_otp):
        await make_account()
        reset_token = await self._reset_token(account_service, last_otp)
        await account_service.reset_password(reset_token, NEW_PASSWORD)
        with pytest.raises(StalePasswordError):
            await account_service.reset_password(reset_token, "Another1!")

    async def test_grant_after_recent_change_is_usable(
        self, account_service, session_service, make_account, last_otp
    ):
        account = await make_account()
        # Change and reset within the same clock tick
        await session_service.change_password(account, PASSWORD, NEW_PASSWORD)
        reset_token = await self._reset_token(account_service, last_otp)
        await account_service.reset_password(reset_token, "Another1!")
        await session_service.login("alice", "Another1!")

    async def test_unknown_email_is_silent(
        self, account_service, email_provider, hasher, mocker
    ):
        dummy = mocker.spy(hasher, "verify_dummy")
        await account_service.request_password_reset("nobody@example.com")
        email_provider.send_otp_email.assert_not_awaited()
        dummy.assert_called_once()

    async def test_delivery_failure_is_silent(
        self, account_service, make_account, email_provider
    ):
        email_provider.send_otp_email.return_value = False
        await make_account()
        await account_service.request_password_reset("alice@example.com")

    async def test_verify_unknown_email(self, account_service, hasher, mocker):
        dummy = mocker.spy(hasher, "verify_dummy")
        with pytest.raises(OtpNotFoundError):
            await account_service.verify_password_reset("nobody@example.com", "123456")
        dummy.assert_called_once_with("123456")

    async def test_email_code_cannot_reset(self, account_service, make_account, last_otp):
        account = await make_account()
        await account_service.request_email_verification(account)
        with pytest.raises(OtpNotFoundError):
            await account_service.verify_password_reset("alice@example.com", last_otp())

    async def test_access_token_is_not_a_grant(
        self, account_service, session_service, make_account
    ):
        await make_account()
        _, pair = await session_service.login("alice", PASSWORD)
        with pytest.raises(TokenMalformedError):
            await account_service.reset_password(pair.access_token, NEW_PASSWORD)

    async def test_expired_grant(self, account_service, make_account, jwt_settings):
        account = await make_account()
        past = utc_now() - timedelta(hours=1)
        stale_codec = TokenCodec(jwt_settings, clock=lambda: past)
        with pytest.raises(TokenExpiredError):
            await account_service.reset_password(
                stale_codec.issue_reset(str(account.id)), NEW_PASSWORD
            )

    async def test_weak_new_password(self, account_service, make_account, last_otp):
        await make_account()
        reset_token = await self._reset_token(account_service, last_otp)
        with pytest.raises(ValidationError) as exc:
            await account_service.reset_password(reset_token, "weak")
        assert exc.value.field == "new_password"

    async def test_deleted_account(
        self, account_service, make_account, last_otp, accounts_collection
    ):
        account = await make_account()
        reset_token = await self._reset_token(account_service, last_otp)
        accounts_collection.sync.delete_one({"_id": account.id})
        with pytest.raises(AuthenticationError):
            await account_service.reset_password(reset_token, NEW_PASSWORD)
