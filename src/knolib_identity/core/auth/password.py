"""Password hashing utilities using bcrypt."""

import bcrypt

BCRYPT_ROUNDS = 12

# bcrypt refuses input longer than this
BCRYPT_MAX_BYTES = 72

# Compared against when the account does not exist, so unknown emails cost
# the same bcrypt work as wrong passwords.
_DUMMY_HASH = bcrypt.hashpw(b"knolib-identity-dummy", bcrypt.gensalt(BCRYPT_ROUNDS)).decode(
    "utf-8"
)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password, at most 72 bytes as UTF-8

    Returns:
        Bcrypt hash string

    Raises:
        ValueError: If the password is longer than bcrypt accepts.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password longer than {BCRYPT_MAX_BYTES} bytes")
    salt = bcrypt.gensalt(BCRYPT_ROUNDS)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against a hash.

    A missing hash or an over-long password still runs one bcrypt comparison
    before returning False, so neither is distinguishable by timing.

    Args:
        plain_password: Plain text password to check
        hashed_password: Bcrypt hash to check against, or None

    Returns:
        True if password matches hash
    """
    encoded = plain_password.encode("utf-8")
    if not hashed_password or len(encoded) > BCRYPT_MAX_BYTES:
        bcrypt.checkpw(encoded[:BCRYPT_MAX_BYTES], _DUMMY_HASH.encode("utf-8"))
        return False
    if not plain_password:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
