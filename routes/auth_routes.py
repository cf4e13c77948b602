"""
Account and session endpoints.

Access and refresh tokens travel as HttpOnly cookies; the access token is
also returned in the body so API clients can use ``Authorization: Bearer``.
All failures are AppErrors rendered by the global handler.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from config import AppSettings
from dependencies import (
    REFRESH_COOKIE,
    get_account_service,
    get_current_account,
    get_session_service,
    get_settings,
    require_verified_email,
)
from errors import AuthenticationError
from routes.cookies import clear_session_cookies, set_session_cookies
from schemas.dto.requests.auth import (
    ChangeNameRequest,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    PasswordResetRequest,
    RefreshRequest,
    SignupRequest,
    VerifyEmailRequest,
    VerifyPasswordOtpRequest,
)
from schemas.dto.responses.auth import (
    AccountProfileResponse,
    LoginResponse,
    PasswordResetTokenResponse,
    PublicProfileResponse,
    RefreshResponse,
    SignupResponse,
    VerifyEmailResponse,
)
from schemas.dto.responses.common import ERROR_RESPONSES, MessageResponse
from schemas.models.account import AccountDoc
from services.account_service import AccountService
from services.session_service import SessionService

router = APIRouter(prefix="/api/v1/users", tags=["users"], responses=ERROR_RESPONSES)


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=SignupResponse)
async def signup(
    body: SignupRequest,
    accounts: AccountService = Depends(get_account_service),
) -> SignupResponse:
    account = await accounts.register(
        username=body.username,
        full_name=body.full_name,
        email=body.email,
        password=body.password,
    )
    return SignupResponse(user=AccountProfileResponse.from_account(account))


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
    settings: AppSettings = Depends(get_settings),
) -> LoginResponse:
    account, pair = await sessions.login(body.identifier, body.password)
    set_session_cookies(response, pair, settings.jwt)
    return LoginResponse(
        access_token=pair.access_token,
        user=AccountProfileResponse.from_account(account),
    )


@router.post("/refresh-access", response_model=RefreshResponse)
async def refresh_access(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    sessions: SessionService = Depends(get_session_service),
    settings: AppSettings = Depends(get_settings),
) -> RefreshResponse:
    token = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    if not token:
        raise AuthenticationError("Refresh token is required!")
    _, pair = await sessions.refresh(token)
    set_session_cookies(response, pair, settings.jwt)
    return RefreshResponse(access_token=pair.access_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    account: AccountDoc = Depends(get_current_account),
    sessions: SessionService = Depends(get_session_service),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    await sessions.logout(account)
    clear_session_cookies(response, settings.jwt)
    return MessageResponse(success=True, message="User logged out successfully.")


@router.get("/me", response_model=AccountProfileResponse)
async def me(account: AccountDoc = Depends(get_current_account)) -> AccountProfileResponse:
    return AccountProfileResponse.from_account(account)


@router.post("/request-email-otp", response_model=MessageResponse)
async def request_email_otp(
    account: AccountDoc = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    await accounts.request_email_verification(account)
    return MessageResponse(
        success=True,
        message=f"An OTP was sent to {account.email}. Check your mail inbox.",
    )


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    body: VerifyEmailRequest,
    account: AccountDoc = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> VerifyEmailResponse:
    verified = await accounts.verify_email(account, body.otp)
    return VerifyEmailResponse(user=AccountProfileResponse.from_account(verified))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    await accounts.request_password_reset(body.email)
    return MessageResponse(
        success=True,
        message="If the email is registered, an OTP has been sent to it.",
    )


@router.post("/verify-password-otp", response_model=PasswordResetTokenResponse)
async def verify_password_otp(
    body: VerifyPasswordOtpRequest,
    accounts: AccountService = Depends(get_account_service),
    settings: AppSettings = Depends(get_settings),
) -> PasswordResetTokenResponse:
    reset_token = await accounts.verify_password_reset(body.email, body.otp)
    return PasswordResetTokenResponse(
        reset_token=reset_token,
        expires_in=settings.jwt.reset_token_ttl_seconds,
    )


@router.patch("/password-reset", response_model=MessageResponse)
async def password_reset(
    body: PasswordResetRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    await accounts.reset_password(body.reset_token, body.new_password)
    clear_session_cookies(response, settings.jwt)
    return MessageResponse(success=True, message="Password reset is successful.")


@router.patch("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    response: Response,
    account: AccountDoc = Depends(require_verified_email),
    sessions: SessionService = Depends(get_session_service),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    await sessions.change_password(account, body.old_password, body.new_password)
    clear_session_cookies(response, settings.jwt)
    return MessageResponse(
        success=True,
        message="Password is successfully changed. Please login again.",
    )


@router.patch("/change-name", response_model=AccountProfileResponse)
async def change_name(
    body: ChangeNameRequest,
    account: AccountDoc = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> AccountProfileResponse:
    updated = await accounts.change_name(account, body.new_full_name)
    return AccountProfileResponse.from_account(updated)


# Declared last so the fixed paths above take precedence
@router.get("/{account_id}", response_model=PublicProfileResponse)
async def public_profile(
    account_id: str,
    accounts: AccountService = Depends(get_account_service),
) -> PublicProfileResponse:
    account = await accounts.get_public_profile(account_id)
    return PublicProfileResponse.from_account(account)
