"""
Password hashing and verification using bcrypt.
"""

import bcrypt

from persona_insights.errors import ValidationError
from persona_insights.settings import settings

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against a hash. Profiles without a password never match."""
    if not hashed_password:
        return False
    password_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))


def validate_password(password: str, min_length: int | None = None) -> None:
    """Raise ValidationError if the password is too weak."""
    min_length = min_length or settings.password_min_length
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters")
