"""In-memory implementation of IdentityRepository.

Used for local development (``STORAGE_BACKEND=memory``) and tests. It
enforces the same unique indexes as the PostgreSQL schema and yields to the
event loop between reads and writes, so interleavings that are possible
against a real database are possible here too.
"""

import asyncio
from datetime import datetime, timezone
from uuid import UUID, uuid4

from knolib_identity.core.auth.repository import (
    UQ_IDENTITY_PROVIDER_ACCOUNT,
    UQ_IDENTITY_USER_PROVIDER,
    UQ_PROVIDER_NAME,
    UQ_USER_EMAIL,
)
from knolib_identity.core.auth.types import DEFAULT_ROLE, LinkedIdentity, Role, User
from knolib_identity.core.exceptions import UniqueViolation
from knolib_identity.core.oauth.types import ProviderConfig


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryIdentityRepository:
    """Dict-backed identity store."""

    def __init__(self) -> None:
        """Initialize empty tables."""
        self.users: dict[UUID, User] = {}
        self.identities: dict[UUID, LinkedIdentity] = {}
        self.providers: dict[str, ProviderConfig] = {}

    # Index checks. Each write checks and inserts without awaiting in
    # between, which makes it atomic on the event loop.

    def _check_email(self, email: str | None, exclude: UUID | None = None) -> None:
        if email is None:
            return
        for user in self.users.values():
            if user.id != exclude and user.email and user.email.lower() == email.lower():
                raise UniqueViolation(UQ_USER_EMAIL)

    def _check_identity(self, user_id: UUID, provider_name: str, account_id: str) -> None:
        for identity in self.identities.values():
            if (
                identity.provider_name == provider_name
                and identity.provider_account_id == account_id
            ):
                raise UniqueViolation(UQ_IDENTITY_PROVIDER_ACCOUNT)
            if identity.user_id == user_id and identity.provider_name == provider_name:
                raise UniqueViolation(UQ_IDENTITY_USER_PROVIDER)

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        await asyncio.sleep(0)
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address, case-insensitively."""
        await asyncio.sleep(0)
        wanted = email.lower()
        for user in self.users.values():
            if user.email and user.email.lower() == wanted:
                return user
        return None

    async def list_users(self) -> list[User]:
        """List all users, oldest first."""
        await asyncio.sleep(0)
        return sorted(self.users.values(), key=lambda u: u.created_at)

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
        await asyncio.sleep(0)
        email = email.lower() if email else None
        self._check_email(email)
        now = _now()
        user = User(
            id=uuid4(),
            email=email,
            name=name,
            avatar=avatar,
            password_hash=password_hash,
            role=role,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

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
        """Update user fields."""
        await asyncio.sleep(0)
        user = self.users.get(user_id)
        if user is None:
            return None
        fields = {
            "name": name,
            "email": email.lower() if email else None,
            "password_hash": password_hash,
            "role": role,
            "is_active": is_active,
            "avatar": avatar,
        }
        changes = {k: v for k, v in fields.items() if v is not None}
        if "email" in changes:
            self._check_email(changes["email"], exclude=user_id)
        if changes:
            user = user.model_copy(update={**changes, "updated_at": _now()})
            self.users[user_id] = user
        return user

    async def touch_last_login(self, user_id: UUID, at: datetime) -> None:
        """Record a successful sign-in."""
        await asyncio.sleep(0)
        user = self.users.get(user_id)
        if user is not None:
            self.users[user_id] = user.model_copy(update={"last_login_at": at})

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
        await asyncio.sleep(0)
        email = email.lower() if email else None
        user_id = uuid4()
        self._check_email(email)
        self._check_identity(user_id, provider_name, provider_account_id)

        now = _now()
        user = User(
            id=user_id,
            email=email,
            name=name,
            avatar=avatar,
            role=DEFAULT_ROLE,
            created_at=now,
            updated_at=now,
        )
        identity = LinkedIdentity(
            id=uuid4(),
            user_id=user_id,
            provider_name=provider_name,
            provider_account_id=provider_account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            created_at=now,
        )
        self.users[user.id] = user
        self.identities[identity.id] = identity
        return user, identity

    # Linked identity operations
    async def get_identity(
        self, provider_name: str, provider_account_id: str
    ) -> LinkedIdentity | None:
        """Get the identity bound to a provider account."""
        await asyncio.sleep(0)
        for identity in self.identities.values():
            if (
                identity.provider_name == provider_name
                and identity.provider_account_id == provider_account_id
            ):
                return identity
        return None

    async def get_identity_by_id(self, identity_id: UUID) -> LinkedIdentity | None:
        """Get identity by ID."""
        await asyncio.sleep(0)
        return self.identities.get(identity_id)

    async def list_identities(self, user_id: UUID) -> list[LinkedIdentity]:
        """List a user's identities, oldest first."""
        await asyncio.sleep(0)
        return sorted(
            (i for i in self.identities.values() if i.user_id == user_id),
            key=lambda i: i.created_at,
        )

    async def create_identity(
        self,
        user_id: UUID,
        provider_name: str,
        provider_account_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> LinkedIdentity:
        """Bind a provider account to a user."""
        await asyncio.sleep(0)
        self._check_identity(user_id, provider_name, provider_account_id)
        identity = LinkedIdentity(
            id=uuid4(),
            user_id=user_id,
            provider_name=provider_name,
            provider_account_id=provider_account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            created_at=_now(),
        )
        self.identities[identity.id] = identity
        return identity

    async def update_identity_tokens(
        self,
        identity_id: UUID,
        access_token: str | None,
        refresh_token: str | None,
    ) -> None:
        """Replace the cached provider tokens."""
        await asyncio.sleep(0)
        identity = self.identities.get(identity_id)
        if identity is None:
            return
        self.identities[identity_id] = identity.model_copy(
            update={
                "access_token": access_token,
                "refresh_token": refresh_token or identity.refresh_token,
            }
        )

    async def delete_identity(self, identity_id: UUID) -> bool:
        """Delete an identity."""
        await asyncio.sleep(0)
        return self.identities.pop(identity_id, None) is not None

    # Provider configuration operations
    async def list_provider_configs(self, enabled_only: bool = False) -> list[ProviderConfig]:
        """List provider configs ordered by ``order`` then name."""
        await asyncio.sleep(0)
        configs = [c for c in self.providers.values() if c.enabled or not enabled_only]
        return sorted(configs, key=lambda c: (c.order, c.name))

    async def get_provider_config(self, name: str) -> ProviderConfig | None:
        """Get provider config by name."""
        await asyncio.sleep(0)
        return self.providers.get(name)

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
        await asyncio.sleep(0)
        if name in self.providers:
            raise UniqueViolation(UQ_PROVIDER_NAME)
        now = _now()
        config = ProviderConfig(
            id=uuid4(),
            name=name,
            display_name=display_name,
            client_id=client_id,
            client_secret=client_secret,
            enabled=enabled,
            order=order,
            icon=icon,
            color=color,
            created_at=now,
            updated_at=now,
        )
        self.providers[name] = config
        return config

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
        """Update provider fields."""
        await asyncio.sleep(0)
        config = self.providers.get(name)
        if config is None:
            return None
        fields = {
            "display_name": display_name,
            "client_id": client_id,
            "client_secret": client_secret,
            "enabled": enabled,
            "order": order,
            "icon": icon,
            "color": color,
        }
        changes = {k: v for k, v in fields.items() if v is not None}
        if changes:
            config = config.model_copy(update={**changes, "updated_at": _now()})
            self.providers[name] = config
        return config

    async def delete_provider_config(self, name: str) -> bool:
        """Delete a provider config."""
        await asyncio.sleep(0)
        return self.providers.pop(name, None) is not None
