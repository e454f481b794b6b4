"""Identity repository protocol for database operations."""

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from knolib_identity.core.auth.types import DEFAULT_ROLE, LinkedIdentity, Role, User
from knolib_identity.core.oauth.types import ProviderConfig

# Unique index names shared by every implementation
UQ_USER_EMAIL = "uq_users_email"
UQ_IDENTITY_PROVIDER_ACCOUNT = "uq_linked_identities_provider_account"
UQ_IDENTITY_USER_PROVIDER = "uq_linked_identities_user_provider"
UQ_PROVIDER_NAME = "uq_oauth_providers_name"


@runtime_checkable
class IdentityRepository(Protocol):
    """Protocol for identity database operations.

    Implementations provide actual storage (PostgreSQL, in-memory). Writes
    that would break a unique index raise
    ``knolib_identity.core.exceptions.UniqueViolation`` naming the index.
    Emails are stored and looked up lower-cased.
    """

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        ...

    async def list_users(self) -> list[User]:
        """List all users, oldest first."""
        ...

    async def create_user(
        self,
        email: str | None,
        name: str | None = None,
        password_hash: str | None = None,
        role: Role = DEFAULT_ROLE,
        is_active: bool = True,
        avatar: str | None = None,
    ) -> User:
        """Create a new user."""
        ...

    async def update_user(
        self,
        user_id: UUID,
        name: str | None = None,
        email: str | None = None,
        password_hash: str | None = None,
        role: Role | None = None,
        is_active: bool | None = None,
        avatar: str | None = None,
    ) -> User | None:
        """Update the given user fields; None leaves a field unchanged."""
        ...

    async def touch_last_login(self, user_id: UUID, at: datetime) -> None:
        """Record a successful sign-in."""
        ...

    async def create_user_with_identity(
        self,
        email: str | None,
        name: str | None,
        avatar: str | None,
        provider_name: str,
        provider_account_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> tuple[User, LinkedIdentity]:
        """Create a user and its first linked identity atomically."""
        ...

    # Linked identity operations
    async def get_identity(
        self, provider_name: str, provider_account_id: str
    ) -> LinkedIdentity | None:
        """Get the identity bound to a provider account."""
        ...

    async def get_identity_by_id(self, identity_id: UUID) -> LinkedIdentity | None:
        """Get identity by ID."""
        ...

    async def list_identities(self, user_id: UUID) -> list[LinkedIdentity]:
        """List a user's identities, oldest first."""
        ...

    async def create_identity(
        self,
        user_id: UUID,
        provider_name: str,
        provider_account_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> LinkedIdentity:
        """Bind a provider account to a user."""
        ...

    async def update_identity_tokens(
        self,
        identity_id: UUID,
        access_token: str | None,
        refresh_token: str | None,
    ) -> None:
        """Replace the cached provider tokens."""
        ...

    async def delete_identity(self, identity_id: UUID) -> bool:
        """Delete an identity. Returns True if a row was removed."""
        ...

    # Provider configuration operations
    async def list_provider_configs(self, enabled_only: bool = False) -> list[ProviderConfig]:
        """List provider configs ordered by ``order`` then name."""
        ...

    async def get_provider_config(self, name: str) -> ProviderConfig | None:
        """Get provider config by name."""
        ...

    async def create_provider_config(
        self,
        name: str,
        display_name: str,
        client_id: str | None = None,
        client_secret: str | None = None,
        enabled: bool = False,
        order: int = 0,
        icon: str | None = None,
        color: str | None = None,
    ) -> ProviderConfig:
        """Create a provider config."""
        ...

    async def update_provider_config(
        self,
        name: str,
        display_name: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        enabled: bool | None = None,
        order: int | None = None,
        icon: str | None = None,
        color: str | None = None,
    ) -> ProviderConfig | None:
        """Update the given provider fields; None leaves a field unchanged."""
        ...

    async def delete_provider_config(self, name: str) -> bool:
        """Delete a provider config. Returns True if a row was removed."""
        ...
