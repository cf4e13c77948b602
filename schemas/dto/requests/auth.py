"""
Request DTOs for account and session endpoints (prefix /api/v1/users).

SignupRequest             — POST  /signup
LoginRequest              — POST  /login
RefreshRequest            — POST  /refresh-access   (body optional; cookie preferred)
VerifyEmailRequest        — POST  /verify-email
ForgotPasswordRequest     — POST  /forgot-password
VerifyPasswordOtpRequest  — POST  /verify-password-otp
PasswordResetRequest      — PATCH /password-reset
ChangePasswordRequest     — PATCH /change-password
ChangeNameRequest         — PATCH /change-name
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.validators import PASSWORD_MAX_LENGTH


class SignupRequest(BaseModel):
    """Request body for POST /signup."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(min_length=1, alias="fullname")
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """Request body for POST /login.

    ``identifier`` is either the username or the email address.
    """

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(min_length=1)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class RefreshRequest(BaseModel):
    """Optional body for POST /refresh-access when cookies are unavailable."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = None


class VerifyEmailRequest(BaseModel):
    """Request body for POST /verify-email.

    ``otp`` is the code sent to the account's email address.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    otp: str = Field(min_length=1, max_length=32)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /forgot-password."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    email: str = Field(min_length=1)


class VerifyPasswordOtpRequest(BaseModel):
    """Request body for POST /verify-password-otp."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    email: str = Field(min_length=1)
    otp: str = Field(min_length=1, max_length=32)


class PasswordResetRequest(BaseModel):
    """Request body for PATCH /password-reset.

    ``reset_token`` is the grant returned by /verify-password-otp.
    """

    model_config = ConfigDict(populate_by_name=True)

    reset_token: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    """Request body for PATCH /change-password."""

    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: str = Field(min_length=1)


class ChangeNameRequest(BaseModel):
    """Request body for PATCH /change-name."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    new_full_name: str = Field(min_length=1, alias="newFullname")
