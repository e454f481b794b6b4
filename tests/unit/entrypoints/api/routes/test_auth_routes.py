"""Tests for auth API routes."""

from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

from fastapi.testclient import TestClient
from identity_helpers import (
    STRONG_PASSWORD,
    bearer,
    enable_stored_provider,
    mock_response,
    patch_http_client,
    seed_user,
)

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.entrypoints.api.app import create_app
from knolib_identity.entrypoints.api.deps import Settings

REDIRECT = "https://app.knolib.com/auth/callback"


class TestLoginEndpoint:
    """Test POST /api/v1/auth/login."""

    def test_login_success(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should return a bearer token and the user without a password hash."""
        user = seed_user(api_repo, "a@x.com", password=STRONG_PASSWORD)

        response = client.post(
            "/api/v1/auth/login", json={"email": "A@x.com", "password": STRONG_PASSWORD}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["id"] == str(user.id)
        assert "password_hash" not in data["user"]

    def test_invalid_credentials(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 401 with the error envelope."""
        seed_user(api_repo, "a@x.com", password=STRONG_PASSWORD)

        response = client.post(
            "/api/v1/auth/login",
            json={"email": "a@x.com", "password": "Wrong123!@"},  # pragma: allowlist secret
        )

        assert response.status_code == 401
        assert response.json()["error"] == "InvalidCredentials"

    def test_unknown_email_same_response(self, client: TestClient) -> None:
        """Should not distinguish unknown emails from wrong passwords."""
        response = client.post(
            "/api/v1/auth/login", json={"email": "nobody@x.com", "password": STRONG_PASSWORD}
        )

        assert response.status_code == 401
        assert response.json() == {
            "error": "InvalidCredentials",
            "message": "Invalid email or password",
        }

    def test_malformed_email(self, client: TestClient) -> None:
        """Should return 400 InvalidEmail."""
        response = client.post(
            "/api/v1/auth/login", json={"email": "nope", "password": STRONG_PASSWORD}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidEmail"

    def test_disabled_account(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 403 AccountDisabled."""
        seed_user(api_repo, "a@x.com", password=STRONG_PASSWORD, is_active=False)

        response = client.post(
            "/api/v1/auth/login", json={"email": "a@x.com", "password": STRONG_PASSWORD}
        )

        assert response.status_code == 403
        assert response.json()["error"] == "AccountDisabled"

    def test_rate_limited(self, client: TestClient) -> None:
        """Should return 429 after five attempts."""
        body = {"email": "a@x.com", "password": "Wrong123!@"}  # pragma: allowlist secret
        statuses = [client.post("/api/v1/auth/login", json=body).status_code for _ in range(6)]

        assert statuses == [401, 401, 401, 401, 401, 429]


class TestRegisterEndpoint:
    """Test POST /api/v1/auth/register."""

    def test_register_success(self, client: TestClient) -> None:
        """Should create an AUTHOR account."""
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "New@X.com", "password": STRONG_PASSWORD, "name": "New"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new@x.com"
        assert data["role"] == "AUTHOR"

    def test_duplicate_email(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 409."""
        seed_user(api_repo, "a@x.com")

        response = client.post(
            "/api/v1/auth/register", json={"email": "a@x.com", "password": STRONG_PASSWORD}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "EmailAlreadyRegistered"

    def test_weak_password(self, client: TestClient) -> None:
        """Should list every violation."""
        response = client.post(
            "/api/v1/auth/register", json={"email": "a@x.com", "password": "abc"}
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "WeakPassword"
        assert len(data["violations"]) == 4

    def test_registration_disabled(
        self, settings: Settings, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 403 when sign-up is off."""
        settings.allow_registration = False

        with TestClient(create_app(settings, repository=api_repo)) as client:
            response = client.post(
                "/api/v1/auth/register", json={"email": "a@x.com", "password": STRONG_PASSWORD}
            )

        assert response.status_code == 403
        assert response.json()["error"] == "RegistrationDisabled"


class TestMeEndpoints:
    """Test the caller's own account endpoints."""

    def test_me(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should return the caller."""
        user = seed_user(api_repo, "a@x.com")

        response = client.get("/api/v1/auth/me", headers=bearer(user))

        assert response.status_code == 200
        assert response.json()["email"] == "a@x.com"

    def test_me_without_token(self, client: TestClient) -> None:
        """Should return 401 with a bearer challenge."""
        response = client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_me_with_garbage_token(self, client: TestClient) -> None:
        """Should return 401."""
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401

    def test_me_deactivated(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should reject a still-valid token of a deactivated account."""
        user = seed_user(api_repo, "a@x.com")
        headers = bearer(user)
        api_repo.users[user.id] = user.model_copy(update={"is_active": False})

        response = client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 403
        assert response.json()["error"] == "AccountDisabled"

    def test_change_password(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should accept the new password on the next login."""
        user = seed_user(api_repo, "a@x.com", password=STRONG_PASSWORD)

        response = client.put(
            "/api/v1/auth/me/password",
            json={"current_password": STRONG_PASSWORD, "new_password": "Xyz789#$"},
            headers=bearer(user),
        )

        assert response.status_code == 204
        login = client.post(
            "/api/v1/auth/login", json={"email": "a@x.com", "password": "Xyz789#$"}
        )
        assert login.status_code == 200

    def test_logout(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should succeed with or without a token."""
        user = seed_user(api_repo, "a@x.com")

        assert client.post("/api/v1/auth/logout", headers=bearer(user)).status_code == 204
        assert client.post("/api/v1/auth/logout").status_code == 204


class TestProviderListing:
    """Test GET /api/v1/auth/providers."""

    def test_seeded_providers_start_disabled(self, client: TestClient) -> None:
        """Should list nothing until an administrator enables a provider."""
        response = client.get("/api/v1/auth/providers")

        assert response.status_code == 200
        assert response.json() == {"providers": []}

    def test_lists_enabled_without_secrets(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should expose display fields only."""
        enable_stored_provider(api_repo, "github")
        enable_stored_provider(api_repo, "google")

        response = client.get("/api/v1/auth/providers")

        providers = response.json()["providers"]
        assert [p["name"] for p in providers] == ["google", "github"]
        assert "client_secret" not in response.text
        assert "client-secret" not in response.text


class TestOAuthEndpoints:
    """Test the OAuth authorize and callback endpoints."""

    def test_authorize(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should return the provider URL."""
        enable_stored_provider(api_repo, "google")

        response = client.get(
            "/api/v1/auth/oauth/google/authorize", params={"redirect_uri": REDIRECT}
        )

        assert response.status_code == 200
        assert response.json()["authorization_url"].startswith("https://accounts.google.com/")

    def test_authorize_bad_redirect(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 400 InvalidRedirect."""
        enable_stored_provider(api_repo, "google")

        response = client.get(
            "/api/v1/auth/oauth/google/authorize",
            params={"redirect_uri": "https://evil.example.com/cb"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRedirect"

    def test_authorize_disabled_provider(self, client: TestClient) -> None:
        """Should return 400 ProviderDisabled for a seeded but disabled provider."""
        response = client.get(
            "/api/v1/auth/oauth/google/authorize", params={"redirect_uri": REDIRECT}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ProviderDisabled"

    def test_authorize_unknown_provider(self, client: TestClient) -> None:
        """Should return 404 ProviderNotFound."""
        response = client.get(
            "/api/v1/auth/oauth/okta/authorize", params={"redirect_uri": REDIRECT}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "ProviderNotFound"

    def test_callback_signs_in(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should exchange the code and issue a session token."""
        enable_stored_provider(api_repo, "github")
        url = client.get(
            "/api/v1/auth/oauth/github/authorize", params={"redirect_uri": REDIRECT}
        ).json()["authorization_url"]
        state = parse_qs(urlsplit(url).query)["state"][0]

        with patch("httpx.AsyncClient") as mock_client:
            patch_http_client(
                mock_client,
                mock_response({"access_token": "gh"}),
                mock_response({"id": 7, "login": "octo", "email": "octo@x.com"}),
            )
            response = client.get(
                "/api/v1/auth/oauth/github/callback", params={"code": "c", "state": state}
            )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "octo@x.com"
        assert data["user"]["name"] == "octo"
        me = client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert me.json()["id"] == data["user"]["id"]

    def test_callback_bad_state(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 400 InvalidOAuthState."""
        enable_stored_provider(api_repo, "github")

        response = client.get(
            "/api/v1/auth/oauth/github/callback", params={"code": "c", "state": "forged"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidOAuthState"
