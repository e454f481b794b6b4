"""Provider registry backed by persisted provider configuration.

Nothing here caches: every call re-reads the store so that an administrator
enabling or disabling a provider takes effect on the next attempt.
"""

from dataclasses import dataclass

import structlog

from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.exceptions import ProviderDisabled, ProviderNotFound, UniqueViolation
from knolib_identity.core.oauth.catalog import CATALOG, build_descriptor
from knolib_identity.core.oauth.types import (
    ProviderConfig,
    ProviderDescriptor,
    ProviderUpdate,
    PublicProvider,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderOrdering:
    """One row of a batch enabled/order update."""

    name: str
    enabled: bool | None = None
    order: int | None = None


class ProviderRegistry:
    """Reads and manages identity-provider configuration."""

    def __init__(self, repository: IdentityRepository) -> None:
        """Initialize the registry.

        Args:
            repository: Store holding provider configs.
        """
        self._repo = repository

    def _describe(self, config: ProviderConfig) -> ProviderDescriptor | None:
        if not config.has_credentials:
            logger.warning("oauth_provider_skipped_incomplete", provider=config.name)
            return None
        descriptor = build_descriptor(config)
        if descriptor is None:
            logger.warning("oauth_provider_skipped_unknown", provider=config.name)
        return descriptor

    async def load_enabled_providers(self) -> list[ProviderDescriptor]:
        """Load every enabled, credential-complete provider ordered by ``order``."""
        configs = await self._repo.list_provider_configs(enabled_only=True)
        descriptors = [d for d in (self._describe(c) for c in configs) if d is not None]
        return sorted(descriptors, key=lambda d: (d.order, d.name))

    async def list_public_providers(self) -> list[PublicProvider]:
        """Secret-stripped listing for untrusted callers."""
        return [d.to_public() for d in await self.load_enabled_providers()]

    async def get_enabled_provider(self, name: str) -> ProviderDescriptor:
        """Resolve one provider for an authentication attempt.

        Raises:
            ProviderNotFound: No config or no catalog entry for ``name``.
            ProviderDisabled: Config exists but is disabled or incomplete.
        """
        config = await self._repo.get_provider_config(name)
        if config is None or name not in CATALOG:
            raise ProviderNotFound(f"Unknown provider: {name}")
        if not config.enabled:
            raise ProviderDisabled(f"Provider is disabled: {name}")
        descriptor = self._describe(config)
        if descriptor is None:
            raise ProviderDisabled(f"Provider is not configured: {name}")
        return descriptor

    # Privileged management

    async def list_all_providers(self) -> list[ProviderConfig]:
        """Every stored config, including credentials."""
        return await self._repo.list_provider_configs()

    async def get_provider(self, name: str) -> ProviderConfig:
        """Get one stored config.

        Raises:
            ProviderNotFound: If no config exists.
        """
        config = await self._repo.get_provider_config(name)
        if config is None:
            raise ProviderNotFound(f"Unknown provider: {name}")
        return config

    async def upsert_provider(self, update: ProviderUpdate) -> ProviderConfig:
        """Create or update a provider by name.

        Unspecified fields keep their stored value. A new provider defaults
        to disabled with order 0 and takes its display metadata from the
        catalog when not given.
        """
        existing = await self._repo.get_provider_config(update.name)
        if existing is None:
            try:
                config = await self._create(update)
            except UniqueViolation:
                # Lost a race with a concurrent create of the same name
                config = await self._update(update)
            logger.info("oauth_provider_saved", provider=config.name, enabled=config.enabled)
            return config

        config = await self._update(update)
        logger.info("oauth_provider_saved", provider=config.name, enabled=config.enabled)
        return config

    async def _create(self, update: ProviderUpdate) -> ProviderConfig:
        entry = CATALOG.get(update.name)
        return await self._repo.create_provider_config(
            name=update.name,
            display_name=update.display_name or (entry.display_name if entry else update.name),
            client_id=update.client_id,
            client_secret=update.client_secret,
            enabled=update.enabled if update.enabled is not None else False,
            order=update.order if update.order is not None else 0,
            icon=update.icon if update.icon is not None else (entry.icon if entry else None),
            color=update.color if update.color is not None else (entry.color if entry else None),
        )

    async def _update(self, update: ProviderUpdate) -> ProviderConfig:
        config = await self._repo.update_provider_config(
            update.name,
            display_name=update.display_name,
            client_id=update.client_id,
            client_secret=update.client_secret,
            enabled=update.enabled,
            order=update.order,
            icon=update.icon,
            color=update.color,
        )
        if config is None:
            raise ProviderNotFound(f"Unknown provider: {update.name}")
        return config

    async def batch_update(self, rows: list[ProviderOrdering]) -> list[ProviderConfig]:
        """Apply enabled/order changes to several providers.

        Raises:
            ProviderNotFound: If any named provider does not exist. Rows
                before the missing one are already applied.
        """
        for row in rows:
            config = await self._repo.update_provider_config(
                row.name, enabled=row.enabled, order=row.order
            )
            if config is None:
                raise ProviderNotFound(f"Unknown provider: {row.name}")
        logger.info("oauth_providers_reordered", count=len(rows))
        return await self._repo.list_provider_configs()

    async def delete_provider(self, name: str) -> None:
        """Delete a provider config.

        Raises:
            ProviderNotFound: If no config exists.
        """
        if not await self._repo.delete_provider_config(name):
            raise ProviderNotFound(f"Unknown provider: {name}")
        logger.info("oauth_provider_deleted", provider=name)

    async def seed_default_providers(self) -> list[str]:
        """Insert the catalog providers, disabled, skipping existing names.

        Returns:
            Names that were inserted.
        """
        inserted: list[str] = []
        for entry in CATALOG.values():
            if await self._repo.get_provider_config(entry.name) is not None:
                continue
            try:
                await self._repo.create_provider_config(
                    name=entry.name,
                    display_name=entry.display_name,
                    enabled=False,
                    order=entry.order,
                    icon=entry.icon,
                    color=entry.color,
                )
            except UniqueViolation:
                continue
            inserted.append(entry.name)
        if inserted:
            logger.info("oauth_providers_seeded", providers=inserted)
        return inserted
