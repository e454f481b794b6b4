"""PostgreSQL implementation of IdentityRepository."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import asyncpg

from knolib_identity.adapters.db.app_db import AppDatabase
from knolib_identity.core.auth.types import DEFAULT_ROLE, LinkedIdentity, Role, User
from knolib_identity.core.exceptions import UniqueViolation
from knolib_identity.core.oauth.types import ProviderConfig

_PROVIDER_COLUMNS = (
    'id, name, display_name, client_id, client_secret, enabled, "order", icon, color, '
    "created_at, updated_at"
)


@asynccontextmanager
async def _translate_unique_violation() -> AsyncIterator[None]:
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        raise UniqueViolation(e.constraint_name or "unknown") from None


def _set_clause(fields: dict[str, Any], start: int = 1) -> tuple[str, list[Any]]:
    """Build ``col = $n`` pairs for the non-None fields."""
    updates = []
    params: list[Any] = []
    param_idx = start
    for column, value in fields.items():
        if value is None:
            continue
        updates.append(f"{column} = ${param_idx}")
        params.append(value)
        param_idx += 1
    return ", ".join(updates), params


class PostgresIdentityRepository:
    """PostgreSQL implementation of identity repository."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_user(self, row: dict[str, Any]) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            email=row.get("email"),
            name=row.get("name"),
            avatar=row.get("avatar"),
            password_hash=row.get("password_hash"),
            role=Role(row.get("role") or DEFAULT_ROLE),
            is_active=row.get("is_active", True),
            last_login_at=row.get("last_login_at"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    def _row_to_identity(self, row: dict[str, Any]) -> LinkedIdentity:
        """Convert database row to LinkedIdentity model."""
        return LinkedIdentity(
            id=row["id"],
            user_id=row["user_id"],
            provider_name=row["provider_name"],
            provider_account_id=row["provider_account_id"],
            access_token=row.get("access_token"),
            refresh_token=row.get("refresh_token"),
            created_at=row["created_at"],
        )

    def _row_to_provider(self, row: dict[str, Any]) -> ProviderConfig:
        """Convert database row to ProviderConfig model."""
        return ProviderConfig(
            id=row["id"],
            name=row["name"],
            display_name=row["display_name"],
            client_id=row.get("client_id"),
            client_secret=row.get("client_secret"),
            enabled=row.get("enabled", False),
            order=row.get("order", 0),
            icon=row.get("icon"),
            color=row.get("color"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM users WHERE id = $1",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address, case-insensitively."""
        row = await self._db.fetch_one(
            "SELECT * FROM users WHERE lower(email) = lower($1)",
            email,
        )
        return self._row_to_user(row) if row else None

    async def list_users(self) -> list[User]:
        """List all users, oldest first."""
        rows = await self._db.fetch_all("SELECT * FROM users ORDER BY created_at, id")
        return [self._row_to_user(row) for row in rows]

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
        async with _translate_unique_violation():
            row = await self._db.fetch_one(
                """
                INSERT INTO users (id, email, name, password_hash, role, is_active, avatar)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                uuid4(),
                email.lower() if email else None,
                name,
                password_hash,
                Role(role).value,
                is_active,
                avatar,
            )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_user(row)

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
        clause, params = _set_clause(
            {
                "name": name,
                "email": email.lower() if email else None,
                "password_hash": password_hash,
                "role": Role(role).value if role else None,
                "is_active": is_active,
                "avatar": avatar,
            }
        )
        if not clause:
            return await self.get_user_by_id(user_id)

        params.append(user_id)
        async with _translate_unique_violation():
            row = await self._db.fetch_one(
                f"""
                UPDATE users SET {clause}, updated_at = NOW()
                WHERE id = ${len(params)}
                RETURNING *
                """,
                *params,
            )
        return self._row_to_user(row) if row else None

    async def touch_last_login(self, user_id: UUID, at: datetime) -> None:
        """Record a successful sign-in."""
        await self._db.execute(
            "UPDATE users SET last_login_at = $1 WHERE id = $2",
            at,
            user_id,
        )

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
        """Create a user and its first linked identity in one transaction."""
        async with _translate_unique_violation():
            async with self._db.transaction() as conn:
                user_row = await conn.fetchrow(
                    """
                    INSERT INTO users (id, email, name, avatar, role)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING *
                    """,
                    uuid4(),
                    email.lower() if email else None,
                    name,
                    avatar,
                    DEFAULT_ROLE.value,
                )
                assert user_row is not None, "INSERT RETURNING should always return a row"
                identity_row = await conn.fetchrow(
                    """
                    INSERT INTO linked_identities
                        (id, user_id, provider_name, provider_account_id,
                         access_token, refresh_token)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING *
                    """,
                    uuid4(),
                    user_row["id"],
                    provider_name,
                    provider_account_id,
                    access_token,
                    refresh_token,
                )
                assert identity_row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_user(dict(user_row)), self._row_to_identity(dict(identity_row))

    # Linked identity operations
    async def get_identity(
        self, provider_name: str, provider_account_id: str
    ) -> LinkedIdentity | None:
        """Get the identity bound to a provider account."""
        row = await self._db.fetch_one(
            """
            SELECT * FROM linked_identities
            WHERE provider_name = $1 AND provider_account_id = $2
            """,
            provider_name,
            provider_account_id,
        )
        return self._row_to_identity(row) if row else None

    async def get_identity_by_id(self, identity_id: UUID) -> LinkedIdentity | None:
        """Get identity by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM linked_identities WHERE id = $1",
            identity_id,
        )
        return self._row_to_identity(row) if row else None

    async def list_identities(self, user_id: UUID) -> list[LinkedIdentity]:
        """List a user's identities, oldest first."""
        rows = await self._db.fetch_all(
            "SELECT * FROM linked_identities WHERE user_id = $1 ORDER BY created_at, id",
            user_id,
        )
        return [self._row_to_identity(row) for row in rows]

    async def create_identity(
        self,
        user_id: UUID,
        provider_name: str,
        provider_account_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> LinkedIdentity:
        """Bind a provider account to a user."""
        async with _translate_unique_violation():
            row = await self._db.fetch_one(
                """
                INSERT INTO linked_identities
                    (id, user_id, provider_name, provider_account_id, access_token, refresh_token)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                uuid4(),
                user_id,
                provider_name,
                provider_account_id,
                access_token,
                refresh_token,
            )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_identity(row)

    async def update_identity_tokens(
        self,
        identity_id: UUID,
        access_token: str | None,
        refresh_token: str | None,
    ) -> None:
        """Replace the cached provider tokens."""
        await self._db.execute(
            """
            UPDATE linked_identities
            SET access_token = $1, refresh_token = COALESCE($2, refresh_token)
            WHERE id = $3
            """,
            access_token,
            refresh_token,
            identity_id,
        )

    async def delete_identity(self, identity_id: UUID) -> bool:
        """Delete an identity."""
        result = await self._db.execute(
            "DELETE FROM linked_identities WHERE id = $1",
            identity_id,
        )
        return result == "DELETE 1"

    # Provider configuration operations
    async def list_provider_configs(self, enabled_only: bool = False) -> list[ProviderConfig]:
        """List provider configs ordered by ``order`` then name."""
        where = "WHERE enabled = true" if enabled_only else ""
        rows = await self._db.fetch_all(
            f'SELECT {_PROVIDER_COLUMNS} FROM oauth_providers {where} ORDER BY "order", name'
        )
        return [self._row_to_provider(row) for row in rows]

    async def get_provider_config(self, name: str) -> ProviderConfig | None:
        """Get provider config by name."""
        row = await self._db.fetch_one(
            f"SELECT {_PROVIDER_COLUMNS} FROM oauth_providers WHERE name = $1",
            name,
        )
        return self._row_to_provider(row) if row else None

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
        async with _translate_unique_violation():
            row = await self._db.fetch_one(
                f"""
                INSERT INTO oauth_providers
                    (id, name, display_name, client_id, client_secret, enabled, "order",
                     icon, color)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {_PROVIDER_COLUMNS}
                """,
                uuid4(),
                name,
                display_name,
                client_id,
                client_secret,
                enabled,
                order,
                icon,
                color,
            )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_provider(row)

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
        clause, params = _set_clause(
            {
                "display_name": display_name,
                "client_id": client_id,
                "client_secret": client_secret,
                "enabled": enabled,
                '"order"': order,
                "icon": icon,
                "color": color,
            }
        )
        if not clause:
            return await self.get_provider_config(name)

        params.append(name)
        row = await self._db.fetch_one(
            f"""
            UPDATE oauth_providers SET {clause}, updated_at = NOW()
            WHERE name = ${len(params)}
            RETURNING {_PROVIDER_COLUMNS}
            """,
            *params,
        )
        return self._row_to_provider(row) if row else None

    async def delete_provider_config(self, name: str) -> bool:
        """Delete a provider config."""
        result = await self._db.execute(
            "DELETE FROM oauth_providers WHERE name = $1",
            name,
        )
        return result == "DELETE 1"
