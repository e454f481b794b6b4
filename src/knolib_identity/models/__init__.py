"""SQLAlchemy models for the identity database."""
from knolib_identity.models.base import BaseModel
from knolib_identity.models.user import User
from knolib_identity.models.linked_identity import LinkedIdentity
from knolib_identity.models.oauth_provider import OAuthProvider

__all__ = [
    "BaseModel",
    "User",
    "LinkedIdentity",
    "OAuthProvider",
]
