"""
Residential Admin - Password Hashing Utilities

bcrypt hashing with the work factor taken from settings.BCRYPT_WORK_FACTOR.
Hashes made with a lower factor are upgraded on the next successful login.

Security:
- Never log or expose plaintext passwords
- bcrypt includes salt automatically
- bcrypt only considers the first 72 bytes; longer input is rejected
"""

from typing import Optional

import bcrypt

from residential_admin.config import settings


def hash_password(password: str, work_factor: Optional[int] = None) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plaintext password
        work_factor: Override for settings.BCRYPT_WORK_FACTOR

    Returns:
        bcrypt hash string (includes salt)

    Raises:
        ValueError: If the password is longer than 72 bytes

    Example:
        >>> hashed = hash_password("admin123")
        >>> hashed.startswith("$2b$")
        True
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > 72:
        raise ValueError("Password exceeds 72 bytes")

    salt = bcrypt.gensalt(rounds=work_factor or settings.BCRYPT_WORK_FACTOR)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against a bcrypt hash.

    Uses constant-time comparison to prevent timing attacks.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except (ValueError, TypeError):
        # Invalid hash format or over-long password
        return False


def needs_rehash(hashed_password: str, target_work_factor: Optional[int] = None) -> bool:
    """
    Check if a password hash was made with a lower work factor than configured.

    Example:
        # After raising BCRYPT_WORK_FACTOR from 10 to 12:
        >>> needs_rehash(old_hash)  # Generated with factor 10
        True
    """
    target = target_work_factor or settings.BCRYPT_WORK_FACTOR
    try:
        # bcrypt hash format: $2b$XX$...
        _, work_factor_str, _ = hashed_password.split("$")[1:4]
        return int(work_factor_str) < target
    except (ValueError, IndexError):
        # Not a bcrypt hash at all
        return True
