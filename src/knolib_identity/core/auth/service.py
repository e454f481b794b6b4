"""Auth service for login, OAuth sign-in, registration and principal resolution."""

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

import structlog

from knolib_identity.core.auth.credentials import CredentialAuthenticator
from knolib_identity.core.auth.jwt import SessionTokens, TokenError
from knolib_identity.core.auth.linker import AccountLinker
from knolib_identity.core.auth.password import hash_password, verify_password
from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.auth.types import (
    LinkedIdentity,
    LoginResult,
    Principal,
    User,
    UserView,
)
from knolib_identity.core.exceptions import (
    AccountDisabled,
    EmailAlreadyRegistered,
    InvalidCredentials,
    InvalidEmail,
    RateLimited,
    RegistrationDisabled,
    Unauthorized,
    UniqueViolation,
    UserNotFound,
    WeakPassword,
)
from knolib_identity.core.oauth.flow import OAuthFlow
from knolib_identity.core.rbac.permissions import lower_role
from knolib_identity.safety.rate_limit import RateLimiter
from knolib_identity.safety.validators import (
    normalize_email,
    validate_email_shape,
    validate_password_strength,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthPolicy:
    """Tunable limits for sign-in and registration."""

    login_max_attempts: int = 5
    login_window_seconds: float = 900
    oauth_max_attempts: int = 20
    oauth_window_seconds: float = 900
    allow_registration: bool = False


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        repo: IdentityRepository,
        tokens: SessionTokens,
        rate_limiter: RateLimiter,
        flow: OAuthFlow,
        linker: AccountLinker,
        policy: AuthPolicy | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            repo: Identity repository.
            tokens: Session token issuer/verifier.
            rate_limiter: Attempt limiter shared by login and OAuth.
            flow: OAuth flow orchestrator.
            linker: Account linker for OAuth sign-in.
            policy: Limits and registration switch.
        """
        self._repo = repo
        self._tokens = tokens
        self._limiter = rate_limiter
        self._flow = flow
        self._linker = linker
        self._credentials = CredentialAuthenticator(repo)
        self._policy = policy or AuthPolicy()

    def _issue(self, user: User) -> LoginResult:
        now = datetime.now(timezone.utc)
        return LoginResult(
            access_token=self._tokens.issue(user.id, user.role, now=now),
            expires_at=self._tokens.expires_at(now),
            user=UserView.from_user(user),
        )

    async def login(self, email: str, password: str, client_ip: str | None = None) -> LoginResult:
        """Authenticate with email and password and issue a session token.

        Args:
            email: Email address, any case.
            password: Plain text password.
            client_ip: Caller address, for logging.

        Returns:
            Session token and user.

        Raises:
            InvalidEmail: Malformed email.
            RateLimited: Too many attempts for this email.
            InvalidCredentials: Unknown email or wrong password.
            AccountDisabled: Deactivated account.
        """
        if not validate_email_shape(email):
            raise InvalidEmail()
        email = normalize_email(email)

        rate_key = f"login:{email}"
        if not self._limiter.check_rate(
            rate_key, self._policy.login_max_attempts, self._policy.login_window_seconds
        ):
            logger.warning("login_rate_limited", client_ip=client_ip)
            raise RateLimited()

        user = await self._credentials.authenticate(email, password)

        now = datetime.now(timezone.utc)
        await self._repo.touch_last_login(user.id, now)
        user = user.model_copy(update={"last_login_at": now})
        self._limiter.reset(rate_key)

        logger.info("login_succeeded", user_id=str(user.id), method="password")
        return self._issue(user)

    async def begin_oauth(self, provider_name: str, redirect_uri: str) -> str:
        """Start an OAuth sign-in. Returns the provider authorization URL."""
        return await self._flow.begin_authorization(provider_name, redirect_uri)

    async def complete_oauth(
        self,
        provider_name: str,
        code: str,
        state: str,
        client_ip: str | None = None,
    ) -> LoginResult:
        """Finish an OAuth sign-in and issue a session token.

        Raises:
            RateLimited: Too many callbacks from this address.
            InvalidOAuthState: Unknown, expired or mismatched state.
            ProviderUnavailable: Provider call failed.
            AccountDisabled: The resolved account is deactivated.
            IdentityConflict: The identity cannot be bound to one account.
        """
        rate_key = f"oauth:{client_ip or 'unknown'}"
        if not self._limiter.check_rate(
            rate_key, self._policy.oauth_max_attempts, self._policy.oauth_window_seconds
        ):
            logger.warning("oauth_rate_limited", provider=provider_name, client_ip=client_ip)
            raise RateLimited()

        result = await self._flow.complete_authorization(provider_name, code, state)
        user = await self._linker.link_or_create_user(
            result.profile, provider_name, tokens=result.tokens
        )

        logger.info("login_succeeded", user_id=str(user.id), method=provider_name)
        return self._issue(user)

    async def begin_link(self, user_id: UUID, provider_name: str, redirect_uri: str) -> str:
        """Start adding a provider account to a signed-in user.

        The issued ``state`` is bound to ``user_id``; only that user can
        complete it, and it cannot be used for a sign-in.
        """
        return await self._flow.begin_authorization(
            provider_name, redirect_uri, link_user_id=user_id
        )

    async def complete_link(
        self,
        user_id: UUID,
        provider_name: str,
        code: str,
        state: str,
        client_ip: str | None = None,
    ) -> LinkedIdentity:
        """Finish a link flow and bind the provider account the user proved.

        The provider account id comes from the provider's own profile
        response, never from the caller.

        Raises:
            RateLimited: Too many callbacks from this address.
            InvalidOAuthState: Unknown, expired, or started by someone else.
            ProviderUnavailable: Provider call failed.
            IdentityConflict: The provider account belongs to another user.
            DuplicateLink: Already linked, or the user already holds this provider.
        """
        rate_key = f"oauth:{client_ip or 'unknown'}"
        if not self._limiter.check_rate(
            rate_key, self._policy.oauth_max_attempts, self._policy.oauth_window_seconds
        ):
            logger.warning("oauth_rate_limited", provider=provider_name, client_ip=client_ip)
            raise RateLimited()

        result = await self._flow.complete_authorization(
            provider_name, code, state, link_user_id=user_id
        )
        return await self._linker.link_identity(
            user_id,
            provider_name,
            result.profile.external_id,
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        )

    async def resolve_principal(self, token: str) -> Principal:
        """Turn a bearer token into the caller's principal.

        The stored account is re-read on every call, so deactivation and
        demotion take effect without waiting for the token to expire.

        Raises:
            Unauthorized: Invalid token or unknown user.
            AccountDisabled: Deactivated account.
        """
        try:
            payload = self._tokens.verify(token)
            user_id = UUID(payload.sub)
        except TokenError as e:
            logger.info("session_token_rejected", reason=str(e))
            raise Unauthorized(str(e)) from None
        except ValueError:
            logger.info("session_token_rejected", reason="malformed subject")
            raise Unauthorized("Invalid token: malformed subject") from None

        user = await self._repo.get_user_by_id(user_id)
        if user is None:
            raise Unauthorized("User no longer exists")
        if not user.is_active:
            raise AccountDisabled()

        return Principal(user_id=user.id, role=lower_role(payload.role, user.role))

    async def get_user(self, user_id: UUID) -> User:
        """Get a user by id.

        Raises:
            UserNotFound: If the user does not exist.
        """
        user = await self._repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def register(self, email: str, password: str, name: str | None = None) -> User:
        """Create a password account through self-service sign-up.

        Raises:
            RegistrationDisabled: Sign-up is turned off.
            InvalidEmail: Malformed email.
            WeakPassword: Password fails the strength rules.
            EmailAlreadyRegistered: Email already in use.
        """
        if not self._policy.allow_registration:
            raise RegistrationDisabled()
        if not validate_email_shape(email):
            raise InvalidEmail()
        check = validate_password_strength(password)
        if not check.valid:
            raise WeakPassword(check.violations)

        email = normalize_email(email)
        if await self._repo.get_user_by_email(email) is not None:
            raise EmailAlreadyRegistered()

        try:
            user = await self._repo.create_user(
                email=email, name=name, password_hash=hash_password(password)
            )
        except UniqueViolation:
            raise EmailAlreadyRegistered() from None

        logger.info("user_registered", user_id=str(user.id))
        return user

    async def change_password(
        self, user_id: UUID, current_password: str | None, new_password: str
    ) -> None:
        """Set a new password for the caller.

        Accounts without a password (OAuth-only) may set one without
        supplying a current password.

        Raises:
            UserNotFound: Unknown user.
            InvalidCredentials: Current password is wrong.
            WeakPassword: New password fails the strength rules.
        """
        user = await self.get_user(user_id)
        if user.password_hash and not verify_password(current_password or "", user.password_hash):
            logger.info("password_change_failed", user_id=str(user_id))
            raise InvalidCredentials("Current password is incorrect")

        check = validate_password_strength(new_password)
        if not check.valid:
            raise WeakPassword(check.violations)

        await self._repo.update_user(user_id, password_hash=hash_password(new_password))
        logger.info("password_changed", user_id=str(user_id))

    async def logout(self, principal: Principal | None) -> None:
        """Session tokens are stateless; this only records the event."""
        logger.info("logout", user_id=str(principal.user_id) if principal else None)
