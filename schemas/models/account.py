"""
Account document model.

Maps to the `accounts` MongoDB collection.

password_hash and refresh_token_hash hold argon2 hashes — plaintext secrets
are never stored. The OTP fields (active_otp_hash, otp_purpose, otp_expiry,
otp_attempts) exist only while a challenge is outstanding and are removed
together when it is consumed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc

OTP_PURPOSE_EMAIL_VERIFY = "email_verify"
OTP_PURPOSE_PASSWORD_RESET = "password_reset"

OtpPurpose = Literal["email_verify", "password_reset"]

# Fields cleared as a unit when a challenge is consumed
OTP_FIELDS = ("active_otp_hash", "otp_purpose", "otp_expiry", "otp_attempts")


class AccountDoc(MongoBaseModel):
    """Document model for the `accounts` collection."""

    username: str
    email: str
    full_name: str
    password_hash: str
    password_changed_at: Optional[datetime] = None
    email_verified: bool = False
    refresh_token_hash: Optional[str] = None
    active_otp_hash: Optional[str] = None
    otp_purpose: Optional[OtpPurpose] = None
    otp_expiry: Optional[datetime] = None
    otp_attempts: Optional[int] = Field(default=None, ge=0)
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "password_changed_at", "otp_expiry", "created_at", "updated_at"
    )
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def has_challenge(self) -> bool:
        return bool(self.active_otp_hash and self.otp_expiry)

    def access_claims(self) -> dict:
        """Identity snapshot embedded in access tokens."""
        return {
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
        }
