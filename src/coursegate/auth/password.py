"""Password hashing and policy.

Learn: bcrypt salts every hash itself, so the stored string is all that
verification needs. The work factor comes from settings (12 by default,
4 in the test suite so fixtures stay fast).

Both places that accept a new password (registration and reset
confirmation) apply the same minimum length through password_too_short().
"""

import bcrypt

from coursegate.config import settings

BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    # bcrypt ignores everything past 72 bytes; newer releases raise instead.
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """True when `password` matches; a malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def password_too_short(password: str) -> bool:
    return len(password) < settings.password_min_length
