"""Privileged identity-provider management routes."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from knolib_identity.core.oauth.registry import ProviderOrdering, ProviderRegistry
from knolib_identity.core.oauth.types import ProviderAdminView, ProviderConfig, ProviderUpdate
from knolib_identity.entrypoints.api.deps import get_registry
from knolib_identity.entrypoints.api.middleware.jwt_auth import RequireAdmin

logger = structlog.get_logger()

router = APIRouter(prefix="/admin/oauth-providers", tags=["admin"])

RegistryDep = Annotated[ProviderRegistry, Depends(get_registry)]


class ProviderDetail(ProviderAdminView):
    """Full provider config for administrators, secret included."""

    client_secret: str | None = None

    @classmethod
    def from_stored(cls, config: ProviderConfig) -> "ProviderDetail":
        """Build the admin read view."""
        return cls(
            **ProviderAdminView.from_config(config).model_dump(),
            client_secret=config.client_secret,
        )


class ProviderListResponse(BaseModel):
    """All stored providers."""

    providers: list[ProviderDetail]


class ProviderOrderItem(BaseModel):
    """One entry of a batch enabled/order update."""

    name: str
    enabled: bool | None = None
    order: int | None = None


class BatchUpdateRequest(BaseModel):
    """Batch enabled/order update."""

    providers: list[ProviderOrderItem]


class BatchUpdateResponse(BaseModel):
    """Providers after a batch update, without secrets."""

    providers: list[ProviderAdminView]


@router.get("", response_model=ProviderListResponse)
async def list_providers(auth: RequireAdmin, registry: RegistryDep) -> ProviderListResponse:
    """List every stored provider, including credentials."""
    configs = await registry.list_all_providers()
    return ProviderListResponse(providers=[ProviderDetail.from_stored(c) for c in configs])


@router.post("", response_model=ProviderAdminView)
async def upsert_provider(
    body: ProviderUpdate, auth: RequireAdmin, registry: RegistryDep
) -> ProviderAdminView:
    """Create or update a provider by name. The secret is never echoed back."""
    config = await registry.upsert_provider(body)
    logger.info("admin_provider_saved", actor_id=str(auth.user_id), provider=config.name)
    return ProviderAdminView.from_config(config)


@router.put("", response_model=BatchUpdateResponse)
async def batch_update_providers(
    body: BatchUpdateRequest, auth: RequireAdmin, registry: RegistryDep
) -> BatchUpdateResponse:
    """Update enabled/order for several providers at once."""
    configs = await registry.batch_update(
        [ProviderOrdering(name=p.name, enabled=p.enabled, order=p.order) for p in body.providers]
    )
    logger.info("admin_providers_reordered", actor_id=str(auth.user_id))
    return BatchUpdateResponse(providers=[ProviderAdminView.from_config(c) for c in configs])


@router.get("/{name}", response_model=ProviderDetail)
async def get_provider(name: str, auth: RequireAdmin, registry: RegistryDep) -> ProviderDetail:
    """Get one stored provider, including credentials."""
    return ProviderDetail.from_stored(await registry.get_provider(name))


@router.delete("/{name}", status_code=204)
async def delete_provider(name: str, auth: RequireAdmin, registry: RegistryDep) -> Response:
    """Delete a stored provider."""
    await registry.delete_provider(name)
    logger.info("admin_provider_deleted", actor_id=str(auth.user_id), provider=name)
    return Response(status_code=204)
