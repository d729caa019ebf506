# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Back-office credentials.

The API is protected by a single operator account configured through
BASIC_AUTH_USERNAME and BASIC_AUTH_PASSWORD_HASH. Only the bcrypt hash is
ever stored; `flask auth hash-password` produces it.
"""

from __future__ import annotations

import hmac

import bcrypt

MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValueError):
    """Raised when a password does not meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if password.strip() != password:
        raise PasswordValidationError("Password must not start or end with whitespace")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for a malformed hash instead of raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def check_credentials(username: str, password: str, *, expected_username: str, password_hash: str) -> bool:
    # Run the bcrypt check even on a username mismatch so both paths cost the same
    username_ok = hmac.compare_digest(username.encode('utf-8'), expected_username.encode('utf-8'))
    password_ok = verify_password(password, password_hash)
    return username_ok and password_ok
