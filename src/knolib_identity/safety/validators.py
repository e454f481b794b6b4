"""Input validators for redirects, passwords and email addresses."""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from email_validator import EmailNotValidError, validate_email

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
# bcrypt only accepts the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72

PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

COMMON_PASSWORDS = frozenset(
    {
        "password",
        "123456",
        "123456789",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
    }
)

DEFAULT_ALLOWED_REDIRECT_DOMAINS = ("knolib.com",)

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

# Browsers read a backslash as a path separator, urlsplit does not
_UNSAFE_URL_CHARS = re.compile(r"[\\\s\x00-\x1f\x7f]")


@dataclass
class PasswordCheck:
    """Result of a password strength check."""

    valid: bool
    violations: list[str] = field(default_factory=list)


def validate_redirect(
    url: str,
    allowed_domains: Iterable[str] = DEFAULT_ALLOWED_REDIRECT_DOMAINS,
    development: bool = False,
) -> bool:
    """Check that a redirect target stays on an allowlisted host.

    Args:
        url: Absolute redirect URL.
        allowed_domains: Domains whose hosts and subdomains are accepted.
        development: Accept localhost targets as well.

    Returns:
        True if the scheme is http/https and the host is allowed. URLs with
        userinfo, backslashes, whitespace or control characters are
        rejected outright, since browsers may resolve them to another host.
    """
    url = url.strip()
    if _UNSAFE_URL_CHARS.search(url):
        return False
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except (AttributeError, ValueError):
        return False

    if parts.scheme not in ("http", "https") or not host or "@" in parts.netloc:
        return False

    host = host.lower().rstrip(".")
    if host in _LOCAL_HOSTS:
        return development

    for domain in allowed_domains:
        domain = domain.strip().lower().lstrip(".")
        if not domain or domain in _LOCAL_HOSTS:
            continue
        if host == domain or host.endswith("." + domain):
            return True
    return False


def validate_password_strength(password: str) -> PasswordCheck:
    """Check a password against the strength rules.

    Every violated rule is reported, not only the first.
    """
    violations: list[str] = []

    if len(password) < PASSWORD_MIN_LENGTH:
        violations.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        violations.append(f"Password must be at most {PASSWORD_MAX_LENGTH} characters long")
    elif len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        violations.append(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    if not any(c.isupper() for c in password):
        violations.append("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        violations.append("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        violations.append("Password must contain at least one number")
    if not any(c in PASSWORD_SYMBOLS for c in password):
        violations.append("Password must contain at least one special character")
    if password.lower() in COMMON_PASSWORDS:
        violations.append("Password is too common")

    return PasswordCheck(valid=not violations, violations=violations)


def validate_email_shape(email: str) -> bool:
    """Syntax check of an email address. No DNS lookup is made."""
    if not email:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def normalize_email(email: str) -> str:
    """Canonical stored form of an email address."""
    return email.strip().lower()
