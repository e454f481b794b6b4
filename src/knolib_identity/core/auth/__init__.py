"""Authentication core: credentials, sessions and account linking."""

from knolib_identity.core.auth.jwt import SessionTokens, TokenError
from knolib_identity.core.auth.password import hash_password, verify_password
from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.auth.types import (
    LinkedIdentity,
    LinkedIdentityView,
    LoginResult,
    Principal,
    Role,
    TokenPayload,
    User,
    UserView,
)

__all__ = [
    "IdentityRepository",
    "LinkedIdentity",
    "LinkedIdentityView",
    "LoginResult",
    "Principal",
    "Role",
    "SessionTokens",
    "TokenError",
    "TokenPayload",
    "User",
    "UserView",
    "hash_password",
    "verify_password",
]
