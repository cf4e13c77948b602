"""
Response DTOs for account and session endpoints.

AccountProfileResponse — owner's account shape used by signup/login/me
PublicProfileResponse  — GET   /{account_id}  (200)
SignupResponse         — POST  /signup  (201)
LoginResponse          — POST  /login  (200)
RefreshResponse        — POST  /refresh-access  (200)
VerifyEmailResponse    — POST  /verify-email  (200)
PasswordResetTokenResponse — POST /verify-password-otp  (200)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.account import AccountDoc


class AccountProfileResponse(BaseModel):
    """Account fields safe to return to the owner — no hashes, no OTP state."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    full_name: str
    email: str
    email_verified: bool
    profile_image: Optional[str] = None

    @classmethod
    def from_account(cls, account: AccountDoc) -> "AccountProfileResponse":
        return cls(
            id=str(account.id),
            username=account.username,
            full_name=account.full_name,
            email=account.email,
            email_verified=account.email_verified,
            profile_image=account.profile_image,
        )


class PublicProfileResponse(BaseModel):
    """What anyone may see of an account: no email, no verification state."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    full_name: str
    profile_image: Optional[str] = None

    @classmethod
    def from_account(cls, account: AccountDoc) -> "PublicProfileResponse":
        return cls(
            id=str(account.id),
            username=account.username,
            full_name=account.full_name,
            profile_image=account.profile_image,
        )


class SignupResponse(BaseModel):
    """Response body for POST /signup (201)."""

    model_config = ConfigDict(populate_by_name=True)

    user: AccountProfileResponse


class LoginResponse(BaseModel):
    """Response body for POST /login (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    user: AccountProfileResponse


class RefreshResponse(BaseModel):
    """Response body for POST /refresh-access (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    message: str = "Access token refreshed successfully."


class VerifyEmailResponse(BaseModel):
    """Response body for POST /verify-email (200)."""

    model_config = ConfigDict(populate_by_name=True)

    user: AccountProfileResponse


class PasswordResetTokenResponse(BaseModel):
    """Response body for POST /verify-password-otp (200)."""

    model_config = ConfigDict(populate_by_name=True)

    reset_token: str
    expires_in: int
    message: str = "OTP verification completed successfully."
