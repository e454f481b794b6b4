"""Routes for managing the caller's linked provider accounts."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from knolib_identity.core.auth.linker import AccountLinker
from knolib_identity.core.auth.service import AuthService
from knolib_identity.core.auth.types import LinkedIdentityView, Principal
from knolib_identity.entrypoints.api.deps import client_ip, get_auth_service, get_linker
from knolib_identity.entrypoints.api.middleware.jwt_auth import verify_jwt
from knolib_identity.entrypoints.api.routes.auth import AuthorizationUrlResponse

router = APIRouter(prefix="/auth/link-account", tags=["auth"])

LinkerDep = Annotated[AccountLinker, Depends(get_linker)]
PrincipalDep = Annotated[Principal, Depends(verify_jwt)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


class LinkAccountRequest(BaseModel):
    """Callback parameters from a link authorization started by the caller."""

    provider: str
    code: str
    state: str


class LinkedAccountListResponse(BaseModel):
    """The caller's linked accounts."""

    accounts: list[LinkedIdentityView]


@router.get("", response_model=LinkedAccountListResponse)
async def list_linked_accounts(
    principal: PrincipalDep, linker: LinkerDep
) -> LinkedAccountListResponse:
    """List the caller's own linked accounts."""
    return LinkedAccountListResponse(
        accounts=await linker.list_linked_identities(principal.user_id)
    )


@router.get("/{provider}/authorize", response_model=AuthorizationUrlResponse)
async def link_account_authorize(
    provider: str,
    principal: PrincipalDep,
    service: AuthServiceDep,
    redirect_uri: str = Query(...),
) -> AuthorizationUrlResponse:
    """Start linking a provider account to the caller."""
    url = await service.begin_link(principal.user_id, provider, redirect_uri)
    return AuthorizationUrlResponse(authorization_url=url)


@router.post("", response_model=LinkedIdentityView, status_code=201)
async def link_account(
    body: LinkAccountRequest,
    request: Request,
    principal: PrincipalDep,
    service: AuthServiceDep,
    linker: LinkerDep,
) -> LinkedIdentityView:
    """Finish a link started by the caller and bind the provider account.

    The provider account is the one the provider reports for ``code``.
    Cached provider tokens are stored but never returned.
    """
    identity = await service.complete_link(
        principal.user_id,
        body.provider,
        body.code,
        body.state,
        client_ip=client_ip(request),
    )
    views = await linker.list_linked_identities(principal.user_id)
    return next(v for v in views if v.id == identity.id)


@router.delete("/{identity_id}", status_code=204)
async def unlink_account(identity_id: UUID, principal: PrincipalDep, linker: LinkerDep) -> Response:
    """Remove one of the caller's linked accounts."""
    await linker.unlink_identity(principal.user_id, identity_id)
    return Response(status_code=204)
