"""Auth API routes for login, registration, OAuth sign-in and the caller's account."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, EmailStr, Field

from knolib_identity.core.auth.service import AuthService
from knolib_identity.core.auth.types import LoginResult, Principal, UserView
from knolib_identity.core.oauth.registry import ProviderRegistry
from knolib_identity.core.oauth.types import PublicProvider
from knolib_identity.entrypoints.api.deps import client_ip, get_auth_service, get_registry
from knolib_identity.entrypoints.api.middleware.jwt_auth import optional_jwt, verify_jwt

router = APIRouter(prefix="/auth", tags=["auth"])

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
PrincipalDep = Annotated[Principal, Depends(verify_jwt)]


# Request/Response models
class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr
    password: str
    name: str | None = Field(None, max_length=100)


class ChangePasswordRequest(BaseModel):
    """Password change request body."""

    current_password: str | None = None
    new_password: str


class AuthorizationUrlResponse(BaseModel):
    """Where to send the user to start an OAuth sign-in."""

    authorization_url: str


class ProviderListResponse(BaseModel):
    """Public provider listing."""

    providers: list[PublicProvider]


@router.post("/login", response_model=LoginResult)
async def login(body: LoginRequest, request: Request, service: AuthServiceDep) -> LoginResult:
    """Authenticate with email and password.

    Args:
        body: Login credentials.
        request: The current request.
        service: Auth service.

    Returns:
        Session token and user.
    """
    return await service.login(body.email, body.password, client_ip=client_ip(request))


@router.post("/register", response_model=UserView, status_code=201)
async def register(body: RegisterRequest, service: AuthServiceDep) -> UserView:
    """Self-service sign-up, when enabled."""
    user = await service.register(body.email, body.password, name=body.name)
    return UserView.from_user(user)


@router.post("/logout", status_code=204)
async def logout(
    service: AuthServiceDep,
    principal: Annotated[Principal | None, Depends(optional_jwt)],
) -> Response:
    """Session tokens are stateless; clients discard the token."""
    await service.logout(principal)
    return Response(status_code=204)


@router.get("/me", response_model=UserView)
async def get_me(principal: PrincipalDep, service: AuthServiceDep) -> UserView:
    """Get the current user's profile."""
    return UserView.from_user(await service.get_user(principal.user_id))


@router.put("/me/password", status_code=204)
async def change_password(
    body: ChangePasswordRequest,
    principal: PrincipalDep,
    service: AuthServiceDep,
) -> Response:
    """Change the current user's password."""
    await service.change_password(principal.user_id, body.current_password, body.new_password)
    return Response(status_code=204)


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    registry: Annotated[ProviderRegistry, Depends(get_registry)],
) -> ProviderListResponse:
    """List the sign-in providers a user can choose from."""
    return ProviderListResponse(providers=await registry.list_public_providers())


@router.get("/oauth/{provider}/authorize", response_model=AuthorizationUrlResponse)
async def oauth_authorize(
    provider: str,
    service: AuthServiceDep,
    redirect_uri: str = Query(...),
) -> AuthorizationUrlResponse:
    """Start an OAuth sign-in."""
    url = await service.begin_oauth(provider, redirect_uri)
    return AuthorizationUrlResponse(authorization_url=url)


@router.get("/oauth/{provider}/callback", response_model=LoginResult)
async def oauth_callback(
    provider: str,
    request: Request,
    service: AuthServiceDep,
    code: str = Query(...),
    state: str = Query(...),
) -> LoginResult:
    """Finish an OAuth sign-in and issue a session token."""
    return await service.complete_oauth(provider, code, state, client_ip=client_ip(request))
