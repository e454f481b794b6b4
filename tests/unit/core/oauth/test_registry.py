"""Tests for ProviderRegistry."""

import pytest
from identity_helpers import enable_provider

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.core.exceptions import ProviderDisabled, ProviderNotFound
from knolib_identity.core.oauth.registry import ProviderOrdering, ProviderRegistry
from knolib_identity.core.oauth.types import ProviderUpdate


class TestLoadEnabledProviders:
    """Test the runtime provider listing."""

    async def test_only_enabled_and_complete(self, registry: ProviderRegistry) -> None:
        """Should skip disabled and credential-less providers."""
        await enable_provider(registry, "google")
        await enable_provider(registry, "github", enabled=False)
        await registry.upsert_provider(ProviderUpdate(name="microsoft", enabled=True))

        names = [d.name for d in await registry.load_enabled_providers()]

        assert names == ["google"]

    async def test_skips_unknown_names(self, registry: ProviderRegistry) -> None:
        """Should ignore providers without a catalog entry."""
        await enable_provider(registry, "okta")
        await enable_provider(registry, "github")

        names = [d.name for d in await registry.load_enabled_providers()]

        assert names == ["github"]

    async def test_sorted_by_order(self, registry: ProviderRegistry) -> None:
        """Should order by the configured order, then name."""
        await enable_provider(registry, "google", order=3)
        await enable_provider(registry, "github", order=1)
        await enable_provider(registry, "wechat", order=1)

        names = [d.name for d in await registry.load_enabled_providers()]

        assert names == ["github", "wechat", "google"]

    async def test_public_listing_has_no_credentials(self, registry: ProviderRegistry) -> None:
        """Should expose only display fields."""
        await enable_provider(registry, "google")

        (public,) = await registry.list_public_providers()

        assert set(public.model_dump()) == {"name", "display_name", "icon", "color", "order"}

    async def test_changes_apply_immediately(self, registry: ProviderRegistry) -> None:
        """Should re-read the store on every call."""
        await enable_provider(registry, "google")
        assert len(await registry.load_enabled_providers()) == 1

        await registry.upsert_provider(ProviderUpdate(name="google", enabled=False))

        assert await registry.load_enabled_providers() == []


class TestGetEnabledProvider:
    """Test single-provider resolution."""

    async def test_enabled(self, registry: ProviderRegistry) -> None:
        """Should return the descriptor."""
        await enable_provider(registry, "github")

        descriptor = await registry.get_enabled_provider("github")

        assert descriptor.client_id == "github-client-id"

    async def test_missing(self, registry: ProviderRegistry) -> None:
        """Should raise ProviderNotFound."""
        with pytest.raises(ProviderNotFound):
            await registry.get_enabled_provider("google")

    async def test_disabled(self, registry: ProviderRegistry) -> None:
        """Should raise ProviderDisabled."""
        await enable_provider(registry, "google", enabled=False)

        with pytest.raises(ProviderDisabled):
            await registry.get_enabled_provider("google")

    async def test_incomplete(self, registry: ProviderRegistry) -> None:
        """Should treat a missing secret as not configured."""
        await registry.upsert_provider(ProviderUpdate(name="google", client_id="x", enabled=True))

        with pytest.raises(ProviderDisabled, match="not configured"):
            await registry.get_enabled_provider("google")

    async def test_uncatalogued(self, registry: ProviderRegistry) -> None:
        """Should raise ProviderNotFound for names without a catalog entry."""
        await enable_provider(registry, "okta")

        with pytest.raises(ProviderNotFound):
            await registry.get_enabled_provider("okta")


class TestProviderManagement:
    """Test privileged provider management."""

    async def test_upsert_creates_with_catalog_defaults(self, registry: ProviderRegistry) -> None:
        """Should default to disabled with catalog display metadata."""
        config = await registry.upsert_provider(ProviderUpdate(name="wechat", client_id="wx"))

        assert config.enabled is False
        assert config.order == 0
        assert config.display_name == "微信"
        assert config.icon == "💬"

    async def test_upsert_keeps_unspecified_fields(self, registry: ProviderRegistry) -> None:
        """Should only change fields that were given."""
        await enable_provider(registry, "google")

        config = await registry.upsert_provider(ProviderUpdate(name="google", order=9))

        assert config.order == 9
        assert config.enabled is True
        assert config.client_secret == "google-client-secret"  # pragma: allowlist secret

    async def test_batch_update(self, registry: ProviderRegistry) -> None:
        """Should apply enabled and order changes."""
        await enable_provider(registry, "google")
        await enable_provider(registry, "github")

        configs = await registry.batch_update(
            [
                ProviderOrdering(name="google", order=2),
                ProviderOrdering(name="github", enabled=False, order=1),
            ]
        )

        by_name = {c.name: c for c in configs}
        assert by_name["google"].order == 2
        assert by_name["github"].enabled is False

    async def test_batch_update_missing(self, registry: ProviderRegistry) -> None:
        """Should raise ProviderNotFound for an unknown name."""
        with pytest.raises(ProviderNotFound):
            await registry.batch_update([ProviderOrdering(name="google", enabled=True)])

    async def test_get_and_delete(self, registry: ProviderRegistry) -> None:
        """Should fetch and then remove a stored provider."""
        await enable_provider(registry, "google")

        assert (await registry.get_provider("google")).name == "google"
        await registry.delete_provider("google")

        with pytest.raises(ProviderNotFound):
            await registry.get_provider("google")
        with pytest.raises(ProviderNotFound):
            await registry.delete_provider("google")

    async def test_seed_default_providers(
        self, repo: InMemoryIdentityRepository, registry: ProviderRegistry
    ) -> None:
        """Should insert every catalog provider disabled, once."""
        await enable_provider(registry, "google")

        inserted = await registry.seed_default_providers()

        assert inserted == ["github", "microsoft", "wechat", "alipay"]
        assert await registry.seed_default_providers() == []
        assert all(not c.enabled for c in repo.providers.values() if c.name != "google")
        assert repo.providers["google"].enabled is True
