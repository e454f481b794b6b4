"""Fixtures for API tests."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from identity_helpers import TEST_SECRET

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.entrypoints.api.app import create_app
from knolib_identity.entrypoints.api.deps import Settings


@pytest.fixture
def settings() -> Settings:
    """Settings for a production-like app with registration open."""
    settings = Settings()
    settings.jwt_secret_key = TEST_SECRET
    settings.app_env = "production"
    settings.allowed_redirect_domains = ["knolib.com"]
    settings.allow_registration = True
    settings.oauth_auto_link_by_email = True
    settings.login_max_attempts = 5
    settings.oauth_max_attempts = 20
    return settings


@pytest.fixture
def api_repo() -> InMemoryIdentityRepository:
    """Repository backing the test app."""
    return InMemoryIdentityRepository()


@pytest.fixture
def client(settings: Settings, api_repo: InMemoryIdentityRepository) -> Iterator[TestClient]:
    """Test client with the lifespan running."""
    with TestClient(create_app(settings, repository=api_repo)) as client:
        yield client
