"""Domain-specific exceptions.

All exceptions raised by the identity subsystem inherit from IdentityError.
Each class carries a machine-checkable ``kind`` and the HTTP status the API
layer renders it with, so callers can handle a specific failure or catch
every identity failure with a single except clause.
"""

from __future__ import annotations

from typing import Any


class IdentityError(Exception):
    """Base exception for all identity and access errors.

    Attributes:
        kind: Stable error identifier exposed in API responses.
        status_code: HTTP status used by the API layer.
        message: Human-readable error message.
    """

    kind = "IdentityError"
    status_code = 400
    default_message = "Identity operation failed"

    def __init__(self, message: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable description. Falls back to the class default.
        """
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to the API error envelope."""
        return {"error": self.kind, "message": self.message}


class InvalidCredentials(IdentityError):
    """Email/password pair did not match.

    Unknown email, OAuth-only account and wrong password all raise this
    same error so account existence is not observable.
    """

    kind = "InvalidCredentials"
    status_code = 401
    default_message = "Invalid email or password"


class AccountDisabled(IdentityError):
    """The account exists but has been deactivated."""

    kind = "AccountDisabled"
    status_code = 403
    default_message = "Account has been disabled, please contact an administrator"


class RateLimited(IdentityError):
    """Too many attempts for this key within the current window."""

    kind = "RateLimited"
    status_code = 429
    default_message = "Too many attempts, please try again later"


class ProviderNotFound(IdentityError):
    """No configuration exists for the requested identity provider."""

    kind = "ProviderNotFound"
    status_code = 404
    default_message = "Identity provider not found"


class ProviderDisabled(IdentityError):
    """The identity provider exists but is disabled or incomplete."""

    kind = "ProviderDisabled"
    status_code = 400
    default_message = "Identity provider is not enabled"


class ProviderUnavailable(IdentityError):
    """The upstream identity provider timed out or returned an error."""

    kind = "ProviderUnavailable"
    status_code = 502
    default_message = "Identity provider is unavailable, please try again later"


class IdentityConflict(IdentityError):
    """The external identity is already bound to a different account."""

    kind = "IdentityConflict"
    status_code = 409
    default_message = "This external account is already linked to another user"


class DuplicateLink(IdentityError):
    """The caller already holds an identity for this provider."""

    kind = "DuplicateLink"
    status_code = 409
    default_message = "This provider is already linked to your account"


class InvalidRedirect(IdentityError):
    """Redirect target is not an allowlisted http(s) URL."""

    kind = "InvalidRedirect"
    status_code = 400
    default_message = "Redirect URL is not allowed"


class WeakPassword(IdentityError):
    """Password failed the strength policy.

    Attributes:
        violations: Every rule the password violated.
    """

    kind = "WeakPassword"
    status_code = 400
    default_message = "Password does not meet the strength requirements"

    def __init__(self, violations: list[str], message: str | None = None) -> None:
        """Initialize with the full list of violated rules."""
        super().__init__(message)
        self.violations = list(violations)

    def to_dict(self) -> dict[str, Any]:
        """Include the violated rules in the envelope."""
        data = super().to_dict()
        data["violations"] = self.violations
        return data


class InvalidEmail(IdentityError):
    """Email address is structurally malformed."""

    kind = "InvalidEmail"
    status_code = 400
    default_message = "Invalid email format"


class Unauthorized(IdentityError):
    """Missing, malformed, or expired session token."""

    kind = "Unauthorized"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(IdentityError):
    """Valid session but insufficient role for the operation."""

    kind = "Forbidden"
    status_code = 403
    default_message = "Insufficient permissions"


class InvalidOAuthState(IdentityError):
    """OAuth callback state is unknown, expired, or for another provider."""

    kind = "InvalidOAuthState"
    status_code = 400
    default_message = "Invalid or expired authorization state"


class LinkNotFound(IdentityError):
    """Linked identity does not exist or belongs to someone else."""

    kind = "LinkNotFound"
    status_code = 404
    default_message = "Linked account not found"


class UserNotFound(IdentityError):
    """Referenced user does not exist."""

    kind = "UserNotFound"
    status_code = 404
    default_message = "User not found"


class LastSignInMethod(IdentityError):
    """Unlinking would leave the account with no way to sign in."""

    kind = "LastSignInMethod"
    status_code = 400
    default_message = (
        "Cannot unlink the only sign-in method; set a password or link another account first"
    )


class EmailAlreadyRegistered(IdentityError):
    """Another account already uses this email address."""

    kind = "EmailAlreadyRegistered"
    status_code = 409
    default_message = "This email address is already in use"


class RegistrationDisabled(IdentityError):
    """Self-service registration is turned off."""

    kind = "RegistrationDisabled"
    status_code = 403
    default_message = "New user registration is disabled, please contact an administrator"


class RequestInvalid(IdentityError):
    """Request body, path or query parameters failed validation.

    Attributes:
        fields: ``{"loc", "msg"}`` per failed field. Submitted values are
            never included.
    """

    kind = "ValidationError"
    status_code = 422
    default_message = "Request validation failed"

    def __init__(self, fields: list[dict[str, str]], message: str | None = None) -> None:
        """Initialize with the failed fields."""
        super().__init__(message)
        self.fields = list(fields)

    def to_dict(self) -> dict[str, Any]:
        """Include the failed fields in the envelope."""
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class UniqueViolation(Exception):  # noqa: N818
    """A write hit a uniqueness constraint in the identity store.

    Raised by repositories, never rendered to API callers directly; the
    linker and services translate it into a domain error.

    Attributes:
        constraint: Name of the violated constraint or index.
    """

    def __init__(self, constraint: str) -> None:
        """Initialize with the violated constraint name."""
        super().__init__(f"Unique constraint violated: {constraint}")
        self.constraint = constraint
