"""Session token issuing and verification (stateless JWT)."""

import os
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from pydantic import ValidationError

from knolib_identity.core.auth.types import Role, TokenPayload


class TokenError(Exception):
    """Raised when token validation fails."""

    pass


# Configuration
SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production")
ALGORITHM = "HS256"
SESSION_TTL_HOURS = 24


class SessionTokens:
    """Mints and verifies signed session tokens.

    Tokens carry ``sub`` (user id), ``role``, ``iat`` and ``exp``. They are
    never persisted; a token stays valid until it expires. Verification
    checks signature and expiry only, so callers that need authorization
    guarantees must re-check the account separately.
    """

    def __init__(
        self,
        secret_key: str = SECRET_KEY,
        ttl: timedelta = timedelta(hours=SESSION_TTL_HOURS),
        algorithm: str = ALGORITHM,
    ) -> None:
        """Initialize the token service.

        Args:
            secret_key: HMAC signing key.
            ttl: Lifetime of issued tokens.
            algorithm: JWT signing algorithm.
        """
        self._secret_key = secret_key
        self._ttl = ttl
        self._algorithm = algorithm

    @property
    def ttl(self) -> timedelta:
        """Lifetime of issued tokens."""
        return self._ttl

    def issue(self, user_id: UUID | str, role: Role, now: datetime | None = None) -> str:
        """Create a session token.

        Args:
            user_id: User identifier
            role: User's role at issue time
            now: Issue time, defaults to the current UTC time

        Returns:
            Encoded JWT string
        """
        issued_at = now or datetime.now(timezone.utc)
        expire = issued_at + self._ttl

        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "exp": int(expire.timestamp()),
            "iat": int(issued_at.timestamp()),
        }

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def expires_at(self, now: datetime | None = None) -> datetime:
        """Expiry of a token issued at ``now``."""
        return (now or datetime.now(timezone.utc)) + self._ttl

    def verify(self, token: str) -> TokenPayload:
        """Decode and validate a session token.

        Args:
            token: Encoded JWT string

        Returns:
            Decoded token payload

        Raises:
            TokenError: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "role", "exp", "iat"]},
            )
            return TokenPayload(
                sub=payload["sub"],
                role=payload["role"],
                exp=payload["exp"],
                iat=payload["iat"],
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired") from None
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}") from None
        except ValidationError:
            raise TokenError("Invalid token: malformed claims") from None
