"""Email/password authentication."""

import structlog

from knolib_identity.core.auth.password import verify_password
from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.auth.types import User
from knolib_identity.core.exceptions import AccountDisabled, InvalidCredentials
from knolib_identity.safety.validators import normalize_email

logger = structlog.get_logger()


class CredentialAuthenticator:
    """Checks an email/password pair against stored bcrypt hashes."""

    def __init__(self, repository: IdentityRepository) -> None:
        """Initialize with the user store."""
        self._repo = repository

    async def authenticate(self, email: str, password: str) -> User:
        """Authenticate a user by email and password.

        Unknown email, OAuth-only account and wrong password all cost one
        bcrypt comparison and raise the same error. A deactivated account
        raises AccountDisabled whatever the password, after the same
        comparison.

        Args:
            email: Email address, any case.
            password: Plain text password.

        Returns:
            The authenticated user.

        Raises:
            InvalidCredentials: If the pair does not match an account.
            AccountDisabled: If the account is deactivated.
        """
        user = await self._repo.get_user_by_email(normalize_email(email))
        matched = verify_password(password, user.password_hash if user else None)

        if user is None:
            logger.info("login_failed", reason="invalid_credentials")
            raise InvalidCredentials()

        if not user.is_active:
            logger.info("login_failed", reason="account_disabled", user_id=str(user.id))
            raise AccountDisabled()

        if not matched:
            logger.info("login_failed", reason="invalid_credentials", user_id=str(user.id))
            raise InvalidCredentials()

        return user
