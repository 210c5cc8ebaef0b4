"""Security utilities for authentication and password reset."""
import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from .config import Settings, get_settings


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password string
    """
    # Bcrypt requires bytes and has 72-byte limit
    password_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Previously hashed password

    Returns:
        True if password matches, False otherwise
    """
    try:
        password_bytes = plain_password.encode("utf-8")[:72]
        hashed_bytes = hashed_password.encode("utf-8")
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except (ValueError, TypeError):
        return False


def create_access_token(
    subject: str | int,
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session token.

    Args:
        subject: The subject of the token (the user ID)
        settings: Settings to sign with (defaults to the cached settings)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    settings = settings or get_settings()
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(days=settings.access_token_expire_days))

    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
    }

    encoded: str = jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    return encoded


def decode_access_token(
    token: str,
    settings: Settings | None = None,
) -> dict[str, Any] | None:
    """Decode and validate a session token.

    Args:
        token: The JWT token string
        settings: Settings to verify with (defaults to the cached settings)

    Returns:
        Decoded token payload or None if invalid or expired
    """
    settings = settings or get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        return None


def generate_reset_token() -> str:
    """Generate a random password reset token (32 bytes, hex encoded)."""
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    """Digest a reset token for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
