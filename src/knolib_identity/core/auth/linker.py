"""Binding external provider identities to local accounts."""

from datetime import datetime, timezone
from uuid import UUID

import structlog

from knolib_identity.core.auth.repository import (
    UQ_IDENTITY_PROVIDER_ACCOUNT,
    IdentityRepository,
)
from knolib_identity.core.auth.types import LinkedIdentity, LinkedIdentityView, User
from knolib_identity.core.exceptions import (
    AccountDisabled,
    DuplicateLink,
    IdentityConflict,
    LastSignInMethod,
    LinkNotFound,
    UniqueViolation,
    UserNotFound,
)
from knolib_identity.core.oauth.catalog import CATALOG
from knolib_identity.core.oauth.types import NormalizedProfile, ProviderTokens

logger = structlog.get_logger()

MAX_LINK_ATTEMPTS = 3


class AccountLinker:
    """Resolves a verified external identity to exactly one local user.

    The create-or-attach sequence reads before it writes, so two concurrent
    sign-ins for the same external account can both decide to create. The
    store's unique indexes make one of them fail; the loser re-reads and
    finds the winner's row.
    """

    def __init__(self, repository: IdentityRepository, auto_link_by_email: bool = True) -> None:
        """Initialize the linker.

        Args:
            repository: Identity store.
            auto_link_by_email: Attach a new provider identity to an existing
                account with the same email. When False an email match is a
                conflict and the user must link explicitly while signed in.
        """
        self._repo = repository
        self._auto_link_by_email = auto_link_by_email

    async def link_or_create_user(
        self,
        profile: NormalizedProfile,
        provider_name: str,
        tokens: ProviderTokens | None = None,
    ) -> User:
        """Find or create the user for a provider profile.

        Args:
            profile: Normalized provider profile.
            provider_name: Provider that authenticated the profile.
            tokens: Provider tokens to cache on a new identity.

        Returns:
            The resolved, active user.

        Raises:
            AccountDisabled: The resolved user is inactive.
            IdentityConflict: The email belongs to an account that cannot be
                attached, or a race could not be resolved.
        """
        last_violation: UniqueViolation | None = None
        for _ in range(MAX_LINK_ATTEMPTS):
            try:
                user = await self._resolve(profile, provider_name, tokens)
            except UniqueViolation as e:
                logger.info(
                    "account_link_race_retry",
                    provider=provider_name,
                    constraint=e.constraint,
                )
                last_violation = e
                continue

            now = datetime.now(timezone.utc)
            await self._repo.touch_last_login(user.id, now)
            return user.model_copy(update={"last_login_at": now})

        logger.warning(
            "account_link_conflict",
            provider=provider_name,
            constraint=last_violation.constraint if last_violation else None,
        )
        raise IdentityConflict()

    async def _resolve(
        self,
        profile: NormalizedProfile,
        provider_name: str,
        tokens: ProviderTokens | None,
    ) -> User:
        access_token = tokens.access_token if tokens else None
        refresh_token = tokens.refresh_token if tokens else None

        # 1. Existing binding
        identity = await self._repo.get_identity(provider_name, profile.external_id)
        if identity is not None:
            user = await self._repo.get_user_by_id(identity.user_id)
            if user is None:
                raise IdentityConflict()
            _require_active(user)
            if tokens is not None:
                await self._repo.update_identity_tokens(identity.id, access_token, refresh_token)
            return user

        # 2. Existing account with the same email
        if profile.email:
            user = await self._repo.get_user_by_email(profile.email)
            if user is not None:
                if not self._auto_link_by_email:
                    logger.info(
                        "account_link_requires_explicit_link",
                        provider=provider_name,
                        user_id=str(user.id),
                    )
                    raise IdentityConflict(
                        "An account with this email already exists; "
                        "sign in and link this provider from your account"
                    )
                _require_active(user)
                linked = await self._repo.list_identities(user.id)
                if any(i.provider_name == provider_name for i in linked):
                    logger.warning(
                        "account_link_conflict",
                        provider=provider_name,
                        user_id=str(user.id),
                        reason="provider_already_linked",
                    )
                    raise IdentityConflict()
                await self._repo.create_identity(
                    user.id,
                    provider_name,
                    profile.external_id,
                    access_token=access_token,
                    refresh_token=refresh_token,
                )
                logger.info("account_linked_by_email", provider=provider_name, user_id=str(user.id))
                return user

        # 3. New account
        user, _ = await self._repo.create_user_with_identity(
            email=profile.email,
            name=profile.display_name,
            avatar=profile.avatar,
            provider_name=provider_name,
            provider_account_id=profile.external_id,
            access_token=access_token,
            refresh_token=refresh_token,
        )
        logger.info("account_created_from_provider", provider=provider_name, user_id=str(user.id))
        return user

    async def link_identity(
        self,
        user_id: UUID,
        provider_name: str,
        provider_account_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> LinkedIdentity:
        """Explicitly bind a provider account to a signed-in user.

        Raises:
            IdentityConflict: The account is bound to another user.
            DuplicateLink: The account is already bound to this user, or the
                user already holds an identity for this provider.
        """
        existing = await self._repo.get_identity(provider_name, provider_account_id)
        if existing is not None:
            if existing.user_id == user_id:
                raise DuplicateLink()
            logger.warning(
                "account_link_conflict",
                provider=provider_name,
                user_id=str(user_id),
                reason="linked_to_other_user",
            )
            raise IdentityConflict()

        if any(i.provider_name == provider_name for i in await self._repo.list_identities(user_id)):
            raise DuplicateLink()

        try:
            identity = await self._repo.create_identity(
                user_id,
                provider_name,
                provider_account_id,
                access_token=access_token,
                refresh_token=refresh_token,
            )
        except UniqueViolation as e:
            if e.constraint != UQ_IDENTITY_PROVIDER_ACCOUNT:
                raise DuplicateLink() from None
            winner = await self._repo.get_identity(provider_name, provider_account_id)
            if winner is not None and winner.user_id == user_id:
                raise DuplicateLink() from None
            raise IdentityConflict() from None

        logger.info("account_linked", provider=provider_name, user_id=str(user_id))
        return identity

    async def list_linked_identities(self, user_id: UUID) -> list[LinkedIdentityView]:
        """The user's own identities with provider display metadata."""
        identities = await self._repo.list_identities(user_id)
        configs = {c.name: c for c in await self._repo.list_provider_configs()}

        views = []
        for identity in identities:
            config = configs.get(identity.provider_name)
            entry = CATALOG.get(identity.provider_name)
            views.append(
                LinkedIdentityView(
                    id=identity.id,
                    provider_name=identity.provider_name,
                    provider_account_id=identity.provider_account_id,
                    display_name=(
                        config.display_name if config else entry.display_name if entry else None
                    ),
                    icon=(config.icon if config else None) or (entry.icon if entry else None),
                    color=(config.color if config else None) or (entry.color if entry else None),
                    created_at=identity.created_at,
                )
            )
        return views

    async def unlink_identity(self, user_id: UUID, identity_id: UUID) -> None:
        """Remove one of the user's own identities.

        Raises:
            LinkNotFound: Missing or owned by another user.
            LastSignInMethod: It is the only way into a password-less account.
        """
        identity = await self._repo.get_identity_by_id(identity_id)
        if identity is None or identity.user_id != user_id:
            raise LinkNotFound()

        user = await self._repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFound()

        if not user.password_hash and len(await self._repo.list_identities(user_id)) <= 1:
            raise LastSignInMethod()

        await self._repo.delete_identity(identity_id)
        logger.info("account_unlinked", provider=identity.provider_name, user_id=str(user_id))


def _require_active(user: User) -> None:
    if not user.is_active:
        logger.info("login_failed", reason="account_disabled", user_id=str(user.id))
        raise AccountDisabled()
