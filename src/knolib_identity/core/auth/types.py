"""Auth domain types."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class Role(str, Enum):
    """Account roles, ordered ADMIN > EDITOR > AUTHOR."""

    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    AUTHOR = "AUTHOR"

    @property
    def level(self) -> int:
        """Numeric rank in the role hierarchy."""
        return ROLE_LEVELS[self]


ROLE_LEVELS: dict[Role, int] = {
    Role.ADMIN: 3,
    Role.EDITOR: 2,
    Role.AUTHOR: 1,
}

DEFAULT_ROLE = Role.AUTHOR


class User(BaseModel):
    """User domain model."""

    id: UUID
    email: str | None = None  # None for OAuth-only users whose provider has no email
    name: str | None = None
    avatar: str | None = None
    password_hash: str | None = None  # None for OAuth-only users
    role: Role = DEFAULT_ROLE
    is_active: bool = True
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class UserView(BaseModel):
    """User fields safe to return to API callers."""

    id: UUID
    email: str | None = None
    name: str | None = None
    avatar: str | None = None
    role: Role
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        """Strip the password hash from a user."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar=user.avatar,
            role=user.role,
            is_active=user.is_active,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


class LinkedIdentity(BaseModel):
    """One external provider identity bound to exactly one user."""

    id: UUID
    user_id: UUID
    provider_name: str
    provider_account_id: str
    access_token: str | None = None
    refresh_token: str | None = None
    created_at: datetime


class LinkedIdentityView(BaseModel):
    """A caller's own linked identity with provider display metadata."""

    id: UUID
    provider_name: str
    provider_account_id: str
    display_name: str | None = None
    icon: str | None = None
    color: str | None = None
    created_at: datetime


class TokenPayload(BaseModel):
    """JWT session token claims."""

    sub: str  # user_id
    role: Role
    exp: int  # expiration timestamp
    iat: int  # issued at timestamp


class Principal(BaseModel):
    """Verified caller identity attached to a protected request."""

    user_id: UUID
    role: Role


class LoginResult(BaseModel):
    """Outcome of a successful credential or OAuth sign-in."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserView
