"""
Password utilities for admin accounts.
Uses bcrypt for secure password hashing.
"""
import re
import bcrypt

_SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*(),.?\":{}|<>_\-+=\[\]\\/'`~;]")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hashed password.

    Args:
        password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(
            password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def validate_password_strength(password: str) -> list[str]:
    """
    Check a new password against the account password policy.

    Returns:
        list[str]: Violated rules; empty when the password is acceptable
    """
    errors = []
    if not password or len(password) < 8:
        errors.append("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", password or ""):
        errors.append("Password must contain at least 1 uppercase letter")
    if not re.search(r"[a-z]", password or ""):
        errors.append("Password must contain at least 1 lowercase letter")
    if not _SPECIAL_CHARACTERS.search(password or ""):
        errors.append("Password must contain at least 1 special character")
    return errors
