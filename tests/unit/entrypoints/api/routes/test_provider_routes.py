"""Tests for provider administration routes."""

from fastapi.testclient import TestClient
from identity_helpers import bearer, seed_user

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.core.auth.types import Role

URL = "/api/v1/admin/oauth-providers"


class TestProviderAdmin:
    """Test /api/v1/admin/oauth-providers."""

    def test_requires_admin(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should return 403 for editors."""
        editor = seed_user(api_repo, "e@x.com", role=Role.EDITOR)

        response = client.get(URL, headers=bearer(editor))

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    def test_list_includes_seeded(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should list every seeded provider."""
        admin = seed_user(api_repo, "admin@x.com", role=Role.ADMIN)

        response = client.get(URL, headers=bearer(admin))

        assert response.status_code == 200
        names = [p["name"] for p in response.json()["providers"]]
        assert names == ["google", "github", "microsoft", "wechat", "alipay"]

    def test_upsert_hides_secret_in_response(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should store credentials but only echo a presence flag."""
        admin = seed_user(api_repo, "admin@x.com", role=Role.ADMIN)

        response = client.post(
            URL,
            json={
                "name": "google",
                "client_id": "cid",
                "client_secret": "shh",  # pragma: allowlist secret
                "enabled": True,
            },
            headers=bearer(admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["has_client_secret"] is True
        assert "client_secret" not in data
        assert api_repo.providers["google"].client_secret == "shh"  # pragma: allowlist secret

        detail = client.get(f"{URL}/google", headers=bearer(admin)).json()
        assert detail["client_secret"] == "shh"  # pragma: allowlist secret

        public = client.get("/api/v1/auth/providers").json()["providers"]
        assert [p["name"] for p in public] == ["google"]

    def test_batch_update(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should apply order changes."""
        admin = seed_user(api_repo, "admin@x.com", role=Role.ADMIN)

        response = client.put(
            URL,
            json={"providers": [{"name": "alipay", "order": 0}, {"name": "google", "order": 9}]},
            headers=bearer(admin),
        )

        assert response.status_code == 200
        names = [p["name"] for p in response.json()["providers"]]
        assert names[0] == "alipay"
        assert names[-1] == "google"

    def test_batch_update_unknown(
        self, client: TestClient, api_repo: InMemoryIdentityRepository
    ) -> None:
        """Should return 404 for an unknown name."""
        admin = seed_user(api_repo, "admin@x.com", role=Role.ADMIN)

        response = client.put(
            URL, json={"providers": [{"name": "okta", "enabled": True}]}, headers=bearer(admin)
        )

        assert response.status_code == 404

    def test_delete(self, client: TestClient, api_repo: InMemoryIdentityRepository) -> None:
        """Should delete and then report not found."""
        admin = seed_user(api_repo, "admin@x.com", role=Role.ADMIN)

        assert client.delete(f"{URL}/wechat", headers=bearer(admin)).status_code == 204
        assert client.get(f"{URL}/wechat", headers=bearer(admin)).status_code == 404
