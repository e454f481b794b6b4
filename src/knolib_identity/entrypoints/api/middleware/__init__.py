"""API middleware and auth dependencies."""

from knolib_identity.entrypoints.api.middleware.jwt_auth import (
    RequireAdmin,
    RequireAuthor,
    RequireEditor,
    optional_jwt,
    require_role,
    verify_jwt,
)

__all__ = [
    "RequireAdmin",
    "RequireAuthor",
    "RequireEditor",
    "optional_jwt",
    "require_role",
    "verify_jwt",
]
