"""Response bodies shared by the account and health routers."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body rendered for every AppError; ``code`` is the stable machine key."""

    error: str
    code: str
    field: Optional[str] = None
    details: Optional[Any] = None


# OpenAPI ``responses=`` for routers whose handlers raise AppErrors.
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid input or OTP"},
    401: {"model": ErrorResponse, "description": "Missing, invalid or stale credentials"},
    403: {"model": ErrorResponse, "description": "Email not verified"},
    404: {"model": ErrorResponse, "description": "No active OTP"},
    409: {"model": ErrorResponse, "description": "Username or email already registered"},
    429: {"model": ErrorResponse, "description": "OTP attempts exhausted"},
}


class HealthResponse(BaseModel):
    status: str
    checks: dict[str, str]


class MessageResponse(BaseModel):
    success: bool
    message: Optional[str] = None
