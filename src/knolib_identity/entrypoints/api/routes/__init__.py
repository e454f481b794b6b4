"""API route modules."""

from fastapi import APIRouter

from knolib_identity.entrypoints.api.routes.auth import router as auth_router
from knolib_identity.entrypoints.api.routes.link_account import router as link_account_router
from knolib_identity.entrypoints.api.routes.providers import router as providers_router
from knolib_identity.entrypoints.api.routes.users import router as users_router

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(auth_router)
api_router.include_router(link_account_router)
api_router.include_router(providers_router)
api_router.include_router(users_router)

__all__ = ["api_router"]
