"""Password hashing and verification using bcrypt directly.

Uses bcrypt directly instead of passlib to avoid compatibility issues
between passlib and bcrypt 4.x+ on Python 3.13.
"""

import bcrypt

# bcrypt only looks at the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt.

    Args:
        password: The plain-text password to hash.

    Returns:
        The bcrypt hash string.
    """
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a plain-text password against a bcrypt hash.

    Accounts created without a password (clients invited by their coach)
    store ``None`` and never verify.
    """
    if not hashed_password:
        return False
    return bcrypt.checkpw(_encode(plain_password), hashed_password.encode("utf-8"))
