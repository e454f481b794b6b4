"""Bearer-token authentication dependencies."""

from collections.abc import Callable
from typing import Annotated, Any

import structlog
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from knolib_identity.core.auth.service import AuthService
from knolib_identity.core.auth.types import Principal, Role
from knolib_identity.core.exceptions import Forbidden, IdentityError, Unauthorized
from knolib_identity.core.rbac.permissions import has_role
from knolib_identity.entrypoints.api.deps import get_auth_service

logger = structlog.get_logger()

# Use Bearer token authentication
bearer_scheme = HTTPBearer(auto_error=False)


async def verify_jwt(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> Principal:
    """Verify the session token and return the caller's principal.

    The account is re-read on every request, so a deactivated user is
    rejected even while their token is still valid.

    Args:
        request: The current request.
        service: Auth service.
        credentials: Bearer token credentials.

    Returns:
        Principal with user id and effective role.

    Raises:
        Unauthorized: Token missing, invalid or expired.
        AccountDisabled: Account deactivated.
    """
    if not credentials:
        raise Unauthorized("Missing authentication token")

    principal = await service.resolve_principal(credentials.credentials)

    # Store in request state for downstream use
    request.state.principal = principal

    logger.debug("jwt_verified", user_id=str(principal.user_id), role=principal.role.value)
    return principal


def require_role(min_role: Role) -> Callable[..., Any]:
    """Dependency to require a minimum role level.

    Role hierarchy (lowest to highest):
    - AUTHOR: can create and edit own content
    - EDITOR: can manage all content
    - ADMIN: can manage users and identity providers

    Usage:
        @router.delete("/{id}")
        async def delete_item(
            auth: Annotated[Principal, Depends(require_role(Role.ADMIN))],
        ):
            ...

    Args:
        min_role: Minimum required role.

    Returns:
        Dependency function that validates role.
    """

    async def role_checker(
        auth: Annotated[Principal, Depends(verify_jwt)],
    ) -> Principal:
        if not has_role(auth.role, min_role):
            logger.info(
                "role_check_failed",
                user_id=str(auth.user_id),
                role=auth.role.value,
                required=min_role.value,
            )
            raise Forbidden(f"Role '{min_role.value}' or higher required")
        return auth

    return role_checker


# Common role dependencies for convenience
RequireAuthor = Annotated[Principal, Depends(require_role(Role.AUTHOR))]
RequireEditor = Annotated[Principal, Depends(require_role(Role.EDITOR))]
RequireAdmin = Annotated[Principal, Depends(require_role(Role.ADMIN))]


# Optional JWT - returns None if no token provided
async def optional_jwt(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> Principal | None:
    """Optionally verify JWT, returning None if not provided or not valid."""
    if not credentials:
        return None

    try:
        return await verify_jwt(request, service, credentials)
    except IdentityError:
        return None
