"""Safety layer - rate limiting and input validation."""

from knolib_identity.safety.rate_limit import InMemoryRateLimitStore, RateLimiter, RateLimitStore
from knolib_identity.safety.validators import (
    PasswordCheck,
    validate_email_shape,
    validate_password_strength,
    validate_redirect,
)

__all__ = [
    "InMemoryRateLimitStore",
    "PasswordCheck",
    "RateLimitStore",
    "RateLimiter",
    "validate_email_shape",
    "validate_password_strength",
    "validate_redirect",
]
