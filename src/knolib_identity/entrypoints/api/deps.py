"""Dependency injection and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from fastapi import Request

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.adapters.auth.postgres import PostgresIdentityRepository
from knolib_identity.adapters.db.app_db import AppDatabase
from knolib_identity.core.auth.jwt import SessionTokens
from knolib_identity.core.auth.linker import AccountLinker
from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.auth.service import AuthPolicy, AuthService
from knolib_identity.core.auth.users import UserAdminService
from knolib_identity.core.oauth.flow import OAuthFlow
from knolib_identity.core.oauth.registry import ProviderRegistry
from knolib_identity.core.oauth.state import InMemoryOAuthStateStore
from knolib_identity.safety.rate_limit import InMemoryRateLimitStore, RateLimiter

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.database_url = os.getenv("DATABASE_URL", "postgresql://localhost:5432/knolib")
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "dev-secret-change-in-production")
        self.session_ttl_hours = int(os.getenv("SESSION_TTL_HOURS", "24"))
        self.app_env = os.getenv("APP_ENV", "production")
        self.allowed_redirect_domains = [
            d.strip()
            for d in os.getenv("ALLOWED_REDIRECT_DOMAINS", "knolib.com").split(",")
            if d.strip()
        ]
        self.storage_backend = os.getenv("STORAGE_BACKEND", "postgres").lower()
        self.db_pool_min_size = int(os.getenv("DB_POOL_MIN_SIZE", "2"))
        self.db_pool_max_size = int(os.getenv("DB_POOL_MAX_SIZE", "10"))

        # Attempt limits
        self.login_max_attempts = int(os.getenv("LOGIN_MAX_ATTEMPTS", "5"))
        self.login_window_seconds = int(os.getenv("LOGIN_WINDOW_SECONDS", "900"))
        self.oauth_max_attempts = int(os.getenv("OAUTH_MAX_ATTEMPTS", "20"))
        self.oauth_window_seconds = int(os.getenv("OAUTH_WINDOW_SECONDS", "900"))

        # OAuth behaviour
        self.oauth_http_timeout_seconds = float(os.getenv("OAUTH_HTTP_TIMEOUT_SECONDS", "10"))
        self.oauth_auto_link_by_email = _env_bool("OAUTH_AUTO_LINK_BY_EMAIL", True)
        self.allow_registration = _env_bool("ALLOW_REGISTRATION", False)

    @property
    def development(self) -> bool:
        """Whether localhost redirects are accepted."""
        return self.app_env.lower() == "development"


def wire_services(app: FastAPI, settings: Settings, repository: IdentityRepository) -> None:
    """Build the identity services over ``repository`` and store them in app state."""
    registry = ProviderRegistry(repository)
    limiter = RateLimiter(InMemoryRateLimitStore())
    flow = OAuthFlow(
        registry,
        state_store=InMemoryOAuthStateStore(),
        allowed_redirect_domains=settings.allowed_redirect_domains,
        development=settings.development,
        timeout_seconds=settings.oauth_http_timeout_seconds,
    )
    linker = AccountLinker(repository, auto_link_by_email=settings.oauth_auto_link_by_email)
    tokens = SessionTokens(
        secret_key=settings.jwt_secret_key,
        ttl=timedelta(hours=settings.session_ttl_hours),
    )

    app.state.repository = repository
    app.state.registry = registry
    app.state.linker = linker
    app.state.auth_service = AuthService(
        repository,
        tokens=tokens,
        rate_limiter=limiter,
        flow=flow,
        linker=linker,
        policy=AuthPolicy(
            login_max_attempts=settings.login_max_attempts,
            login_window_seconds=settings.login_window_seconds,
            oauth_max_attempts=settings.oauth_max_attempts,
            oauth_window_seconds=settings.oauth_window_seconds,
            allow_registration=settings.allow_registration,
        ),
    )
    app.state.user_admin = UserAdminService(repository)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Storage backend selection and schema setup
    - Identity service wiring
    - Seeding the built-in (disabled) providers
    """
    settings: Settings = app.state.settings
    app_db: AppDatabase | None = None

    repository: IdentityRepository | None = getattr(app.state, "repository", None)
    if repository is None:
        if settings.storage_backend == "memory":
            repository = InMemoryIdentityRepository()
        else:
            app_db = AppDatabase(
                settings.database_url,
                min_connections=settings.db_pool_min_size,
                max_connections=settings.db_pool_max_size,
            )
            await app_db.connect()
            await app_db.ensure_schema()
            repository = PostgresIdentityRepository(app_db)

    wire_services(app, settings, repository)
    await app.state.registry.seed_default_providers()
    logger.info(
        "identity_service_started",
        storage_backend=type(repository).__name__,
        app_env=settings.app_env,
        allow_registration=settings.allow_registration,
    )

    yield

    if app_db is not None:
        await app_db.close()


def get_settings(request: Request) -> Settings:
    """Get the application settings."""
    settings: Settings = request.app.state.settings
    return settings


def get_auth_service(request: Request) -> AuthService:
    """Get the auth service from app state."""
    service: AuthService = request.app.state.auth_service
    return service


def get_user_admin(request: Request) -> UserAdminService:
    """Get the user administration service from app state."""
    service: UserAdminService = request.app.state.user_admin
    return service


def get_registry(request: Request) -> ProviderRegistry:
    """Get the provider registry from app state."""
    registry: ProviderRegistry = request.app.state.registry
    return registry


def get_linker(request: Request) -> AccountLinker:
    """Get the account linker from app state."""
    linker: AccountLinker = request.app.state.linker
    return linker


def client_ip(request: Request) -> str | None:
    """Caller address as seen by the server."""
    return request.client.host if request.client else None
