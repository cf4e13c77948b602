"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories.account_repository import AccountRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.account_service import AccountService
from services.session_service import SessionService
from services.token_codec import TokenCodec
from services.verification_service import VerificationService
from shared.crypto import SecretHasher, hasher_profile
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_services(app: FastAPI, settings: AppSettings, repository, email_provider) -> None:
    """Wire the credential services onto ``app.state``."""
    hasher = SecretHasher(hasher_profile(settings.hashing.hash_profile))
    codec = TokenCodec(settings.jwt)

    sessions = SessionService(repository, codec, password_hasher=hasher, token_hasher=hasher)
    verification = VerificationService(repository, hasher, email_provider, settings.otp)

    app.state.session_service = sessions
    app.state.account_service = AccountService(
        repository, sessions, verification, codec, password_hasher=hasher
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, env=settings.env)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        repository = AccountRepository.from_db(app.state.db)
        await repository.ensure_indexes()

        http_client = HttpClient()
        email_provider = ZeptoMailProvider(
            settings.email,
            http_client,
            app_name=settings.app_name,
            otp_ttl_minutes=max(1, settings.otp.otp_ttl_seconds // 60),
        )
        build_services(app, settings, repository, email_provider)
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Cookies carry the session, so credentials must be allowed cross-origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
