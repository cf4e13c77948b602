"""
Token codec — signs and verifies compact session tokens with PyJWT.

Three kinds share one key pair and are told apart by the ``type`` claim:

- ``access``  — short-lived, carries an identity snapshot
- ``refresh`` — long-lived, carries only ``sub``; revocable through the
  hash stored on the account
- ``reset``   — password-reset grant issued after a verified reset OTP

RS256 is used when a key pair is configured, HS256 with ``JWT_SECRET``
otherwise. ``iat`` is written with millisecond precision (NumericDate allows
fractions) so it compares exactly against ``password_changed_at``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import jwt

from config import JWTSettings
from errors import TokenExpiredError, TokenMalformedError, TokenSignatureError
from shared.datetime_utils import (
    from_epoch_millis,
    to_epoch_millis,
    truncate_to_millis,
    utc_now,
)
from shared.generators import generate_token_id

_REGISTERED_CLAIMS = {"iss", "aud", "sub", "iat", "exp", "jti", "type"}
# iat is only read for the password-change comparison. It may sit a
# millisecond in the future (see session_service.issue_time), so PyJWT's own
# iat check is off and exp is checked without leeway.
_DECODE_OPTIONS = {"require": ["exp", "iat", "sub", "jti"], "verify_iat": False}


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"


@dataclass(frozen=True)
class TokenClaims:
    account_id: str
    issued_at: datetime
    expires_at: datetime
    kind: TokenKind
    token_id: str
    extra: dict[str, Any] = field(default_factory=dict)


class TokenCodec:
    def __init__(
        self,
        settings: JWTSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            self._signing_key: Any = settings.jwt_private_key.replace("\\n", "\n")
            self._verify_key: Any = settings.jwt_public_key.replace("\\n", "\n")
            self._algorithm = "RS256"
        else:
            if not settings.jwt_secret:
                raise RuntimeError(
                    "JWT_SECRET must be set when RS256 keys are not provided"
                )
            self._signing_key = self._verify_key = settings.jwt_secret
            self._algorithm = "HS256"
        self._settings = settings
        self._clock = clock
        self._ttls = {
            TokenKind.ACCESS: settings.access_token_ttl_seconds,
            TokenKind.REFRESH: settings.refresh_token_ttl_seconds,
            TokenKind.RESET: settings.reset_token_ttl_seconds,
        }

    def issue_access(
        self,
        account_id: str,
        claims: Optional[dict] = None,
        issued_at: Optional[datetime] = None,
    ) -> str:
        return self._issue(TokenKind.ACCESS, account_id, claims, issued_at)

    def issue_refresh(self, account_id: str, issued_at: Optional[datetime] = None) -> str:
        return self._issue(TokenKind.REFRESH, account_id, issued_at=issued_at)

    def issue_reset(self, account_id: str, issued_at: Optional[datetime] = None) -> str:
        return self._issue(TokenKind.RESET, account_id, issued_at=issued_at)

    def _issue(
        self,
        kind: TokenKind,
        account_id: str,
        extra: Optional[dict] = None,
        issued_at: Optional[datetime] = None,
    ) -> str:
        now = truncate_to_millis(issued_at or self._clock())
        payload = {
            key: value
            for key, value in (extra or {}).items()
            if key not in _REGISTERED_CLAIMS
        }
        payload.update(
            {
                "iss": self._settings.jwt_issuer,
                "aud": self._settings.jwt_audience,
                "sub": str(account_id),
                "iat": to_epoch_millis(now) / 1000,
                "exp": int((now + timedelta(seconds=self._ttls[kind])).timestamp()),
                "jti": generate_token_id(),
                "type": kind.value,
            }
        )
        return jwt.encode(payload, self._signing_key, algorithm=self._algorithm)

    def verify(self, token: str, kind: TokenKind) -> TokenClaims:
        """Check signature, expiry and kind of *token*.

        Raises:
            TokenMalformedError: not a JWT, missing claims, wrong issuer,
                audience or kind.
            TokenSignatureError: signature does not match the server key.
            TokenExpiredError: signature valid but ``exp`` has passed.
        """
        if not token or not isinstance(token, str):
            raise TokenMalformedError("Token is missing or malformed")
        try:
            claims = jwt.decode(
                token,
                self._verify_key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options=_DECODE_OPTIONS,
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.InvalidSignatureError as e:
            raise TokenSignatureError("Token signature is invalid") from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformedError("Token is missing or malformed") from e

        if claims.get("type") != kind.value:
            raise TokenMalformedError("Token is missing or malformed")

        try:
            issued_at = from_epoch_millis(round(float(claims["iat"]) * 1000))
            expires_at = from_epoch_millis(int(claims["exp"]) * 1000)
        except (TypeError, ValueError, OverflowError) as e:
            raise TokenMalformedError("Token is missing or malformed") from e

        return TokenClaims(
            account_id=str(claims["sub"]),
            issued_at=issued_at,
            expires_at=expires_at,
            kind=kind,
            token_id=str(claims["jti"]),
            extra={k: v for k, v in claims.items() if k not in _REGISTERED_CLAIMS},
        )
