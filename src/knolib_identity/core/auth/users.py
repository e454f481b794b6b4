"""Administrative user management."""

from uuid import UUID

import structlog

from knolib_identity.core.auth.password import hash_password
from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.auth.types import DEFAULT_ROLE, Principal, Role, User
from knolib_identity.core.exceptions import (
    EmailAlreadyRegistered,
    Forbidden,
    InvalidEmail,
    UniqueViolation,
    UserNotFound,
    WeakPassword,
)
from knolib_identity.core.rbac.permissions import can_delete_account, can_manage_users
from knolib_identity.safety.validators import (
    normalize_email,
    validate_email_shape,
    validate_password_strength,
)

logger = structlog.get_logger()


class UserAdminService:
    """User administration for ADMIN principals.

    Every method takes the acting principal and re-checks the role, so the
    service is safe to call from places other than the HTTP routes.
    """

    def __init__(self, repo: IdentityRepository) -> None:
        """Initialize with the identity repository."""
        self._repo = repo

    def _require_admin(self, actor: Principal) -> None:
        if not can_manage_users(actor):
            logger.warning("user_admin_forbidden", actor_id=str(actor.user_id))
            raise Forbidden()

    def _check_email(self, email: str) -> str:
        if not validate_email_shape(email):
            raise InvalidEmail()
        return normalize_email(email)

    def _check_password(self, password: str) -> str:
        check = validate_password_strength(password)
        if not check.valid:
            raise WeakPassword(check.violations)
        return hash_password(password)

    async def list_users(self, actor: Principal) -> list[User]:
        """All users, oldest first."""
        self._require_admin(actor)
        return await self._repo.list_users()

    async def create_user(
        self,
        actor: Principal,
        email: str,
        password: str,
        name: str | None = None,
        role: Role = DEFAULT_ROLE,
        is_active: bool = True,
    ) -> User:
        """Create a password account.

        Raises:
            Forbidden: Actor is not ADMIN.
            InvalidEmail: Malformed email.
            WeakPassword: Password fails the strength rules.
            EmailAlreadyRegistered: Email already in use.
        """
        self._require_admin(actor)
        email = self._check_email(email)
        password_hash = self._check_password(password)

        if await self._repo.get_user_by_email(email) is not None:
            raise EmailAlreadyRegistered()
        try:
            user = await self._repo.create_user(
                email=email,
                name=name,
                password_hash=password_hash,
                role=role,
                is_active=is_active,
            )
        except UniqueViolation:
            raise EmailAlreadyRegistered() from None

        logger.info(
            "user_created",
            actor_id=str(actor.user_id),
            user_id=str(user.id),
            role=user.role.value,
        )
        return user

    async def update_user(
        self,
        actor: Principal,
        user_id: UUID,
        name: str | None = None,
        email: str | None = None,
        role: Role | None = None,
        is_active: bool | None = None,
        password: str | None = None,
    ) -> User:
        """Update one user; None leaves a field unchanged.

        Raises:
            Forbidden: Actor is not ADMIN, or tries to deactivate themselves.
            UserNotFound: Unknown user.
            InvalidEmail: Malformed email.
            WeakPassword: Password fails the strength rules.
            EmailAlreadyRegistered: Email already in use by another account.
        """
        self._require_admin(actor)
        if is_active is False and user_id == actor.user_id:
            raise Forbidden("You cannot deactivate your own account")

        if email is not None:
            email = self._check_email(email)
            other = await self._repo.get_user_by_email(email)
            if other is not None and other.id != user_id:
                raise EmailAlreadyRegistered()
        password_hash = self._check_password(password) if password else None

        try:
            user = await self._repo.update_user(
                user_id,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                is_active=is_active,
            )
        except UniqueViolation:
            raise EmailAlreadyRegistered() from None
        if user is None:
            raise UserNotFound()

        logger.info(
            "user_updated",
            actor_id=str(actor.user_id),
            user_id=str(user_id),
            role=role.value if role else None,
            is_active=is_active,
            password_changed=password_hash is not None,
        )
        return user

    async def deactivate_user(self, actor: Principal, user_id: UUID) -> User:
        """Delete operation: the account is deactivated, never removed.

        Raises:
            Forbidden: Actor is not ADMIN or targets their own account.
            UserNotFound: Unknown user.
        """
        if not can_delete_account(actor, user_id):
            logger.warning(
                "user_delete_forbidden", actor_id=str(actor.user_id), user_id=str(user_id)
            )
            if actor.user_id == user_id:
                raise Forbidden("You cannot delete your own account")
            raise Forbidden()

        user = await self._repo.update_user(user_id, is_active=False)
        if user is None:
            raise UserNotFound()

        logger.info("user_deactivated", actor_id=str(actor.user_id), user_id=str(user_id))
        return user
