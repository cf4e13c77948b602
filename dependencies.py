"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services are built once in the app lifespan and
stored on app.state; these providers only hand them out.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from config import AppSettings
from errors import AuthenticationError, AuthorizationError
from schemas.models.account import AccountDoc
from services.account_service import AccountService
from services.session_service import SessionService

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def extract_access_token(request: Request) -> Optional[str]:
    """Access token from the cookie, falling back to ``Authorization: Bearer``."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


async def get_current_account(
    request: Request,
    sessions: SessionService = Depends(get_session_service),
) -> AccountDoc:
    """Authenticate the request; stale, expired or forged tokens raise 401."""
    token = extract_access_token(request)
    if not token:
        raise AuthenticationError("Unauthorized request denied! Access token missing.")
    return await sessions.authenticate(token)


async def require_verified_email(
    account: AccountDoc = Depends(get_current_account),
) -> AccountDoc:
    if not account.email_verified:
        raise AuthorizationError("Email verification is required!")
    return account
