"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import timedelta

import pytest
from identity_helpers import TEST_SECRET

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.core.auth import password as password_module
from knolib_identity.core.auth.jwt import SessionTokens
from knolib_identity.core.auth.linker import AccountLinker
from knolib_identity.core.auth.service import AuthPolicy, AuthService
from knolib_identity.core.oauth.flow import OAuthFlow
from knolib_identity.core.oauth.registry import ProviderRegistry
from knolib_identity.core.oauth.state import InMemoryOAuthStateStore
from knolib_identity.safety.rate_limit import InMemoryRateLimitStore, RateLimiter


@pytest.fixture
def anyio_backend() -> str:
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    """Use the minimum bcrypt cost so hashing in tests stays fast."""
    monkeypatch.setattr(password_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def repo() -> InMemoryIdentityRepository:
    """Return an empty in-memory identity repository."""
    return InMemoryIdentityRepository()


@pytest.fixture
def registry(repo: InMemoryIdentityRepository) -> ProviderRegistry:
    """Return a provider registry over the in-memory repository."""
    return ProviderRegistry(repo)


@pytest.fixture
def tokens() -> SessionTokens:
    """Return a session token service with a test secret."""
    return SessionTokens(secret_key=TEST_SECRET, ttl=timedelta(hours=24))


@pytest.fixture
def state_store() -> InMemoryOAuthStateStore:
    """Return a fresh OAuth state store."""
    return InMemoryOAuthStateStore()


@pytest.fixture
def flow(registry: ProviderRegistry, state_store: InMemoryOAuthStateStore) -> OAuthFlow:
    """Return an OAuth flow allowing knolib.com redirects."""
    return OAuthFlow(registry, state_store=state_store, allowed_redirect_domains=["knolib.com"])


@pytest.fixture
def linker(repo: InMemoryIdentityRepository) -> AccountLinker:
    """Return an account linker with auto-link by email enabled."""
    return AccountLinker(repo)


@pytest.fixture
def rate_limiter() -> RateLimiter:
    """Return a rate limiter with its own store."""
    return RateLimiter(InMemoryRateLimitStore())


@pytest.fixture
def auth_service(
    repo: InMemoryIdentityRepository,
    tokens: SessionTokens,
    rate_limiter: RateLimiter,
    flow: OAuthFlow,
    linker: AccountLinker,
) -> AuthService:
    """Return an auth service with registration enabled."""
    return AuthService(
        repo,
        tokens=tokens,
        rate_limiter=rate_limiter,
        flow=flow,
        linker=linker,
        policy=AuthPolicy(allow_registration=True),
    )
