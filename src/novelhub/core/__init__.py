"""Core utilities and configuration for Novel Hub.

This module contains:
- Configuration and settings management
- Security utilities (password hashing, session tokens, reset tokens)
"""
from .config import Settings, get_settings
from .security import (
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Security - Password
    "hash_password",
    "verify_password",
    # Security - JWT
    "create_access_token",
    "decode_access_token",
    # Security - Password reset
    "generate_reset_token",
    "hash_reset_token",
]
