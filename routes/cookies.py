"""Session cookie helpers: two HttpOnly same-site cookies with independent lifetimes."""

from __future__ import annotations

from fastapi import Response

from config import JWTSettings
from dependencies import ACCESS_COOKIE, REFRESH_COOKIE
from services.session_service import TokenPair


def set_session_cookies(response: Response, pair: TokenPair, settings: JWTSettings) -> Response:
    response.set_cookie(
        ACCESS_COOKIE,
        value=pair.access_token,
        max_age=settings.access_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=pair.refresh_token,
        max_age=settings.refresh_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )
    return response


def clear_session_cookies(response: Response, settings: JWTSettings) -> Response:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )
    return response
