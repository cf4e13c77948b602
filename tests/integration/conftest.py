"""
Fixtures for HTTP-level tests.

The app is assembled from the real routers and services (via
``app.build_services``) with a mongomock-backed repository and a mocked
mail provider injected through the lifespan, so no network is touched.
"""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import build_services
from config import AppSettings, DatabaseSettings, HashingSettings
from errors import register_error_handlers
from repositories.account_repository import AccountRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router


@pytest.fixture
def app_settings(jwt_settings, otp_settings) -> AppSettings:
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=jwt_settings,
        otp=otp_settings,
        hashing=HashingSettings(hash_profile="CHEAPEST"),
    )


@pytest.fixture
def test_app(app_settings, accounts_collection, email_provider) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repository = AccountRepository(accounts_collection)
        await repository.ensure_indexes()
        app.state.settings = app_settings
        app.state.db = None
        build_services(app, app_settings, repository, email_provider)
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    return app


@pytest.fixture
def client(test_app):
    with TestClient(test_app) as c:
        yield c
