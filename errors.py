"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

The credential subsystem raises the narrow subclasses below (token,
session and OTP failures) so callers can branch on ``error_code`` while the
transport layer only ever sees AppError instances.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class AuthorizationError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class InternalError(AppError):
    status_code = 500
    error_code = "internal_error"


class EmailDeliveryError(InternalError):
    status_code = 503
    error_code = "email_delivery_failed"


# ── Sessions & tokens ────────────────────────────────────────────────────────


class InvalidCredentialsError(AuthenticationError):
    error_code = "invalid_credentials"


class TokenMalformedError(AuthenticationError):
    error_code = "token_malformed"


class TokenSignatureError(AuthenticationError):
    error_code = "token_signature_invalid"


class TokenExpiredError(AuthenticationError):
    error_code = "token_expired"


class StalePasswordError(AuthenticationError):
    error_code = "stale_password"


class RevokedTokenError(AuthenticationError):
    error_code = "token_revoked"


class IncorrectOldPasswordError(ValidationError):
    error_code = "incorrect_old_password"


# ── One-time passcodes ───────────────────────────────────────────────────────


class OtpNotFoundError(NotFoundError):
    error_code = "otp_not_found"


class OtpExpiredError(ValidationError):
    error_code = "otp_expired"


class OtpIncorrectError(ValidationError):
    error_code = "otp_incorrect"


class OtpAttemptsExhaustedError(RateLimitError):
    error_code = "otp_attempts_exhausted"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        error = ValidationError(
            "Invalid input data provided!",
            field=".".join(loc) or None,
            details=first.get("msg"),
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
