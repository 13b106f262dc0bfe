"""
Password hashing, verification and strength validation.

Hashing is delegated to werkzeug; the strength policy comes from AuthSettings.
"""
import re

from werkzeug.security import check_password_hash, generate_password_hash

from config.settings import AuthSettings

__all__ = [
    "hash_password",
    "verify_password",
    "validate_password_strength",
]

# Hash used when the username is unknown, so a miss costs the same as a hit
_DUMMY_HASH = generate_password_hash("namhatta-dummy-password")


def hash_password(password: str) -> str:
    """Hash a password (werkzeug default scheme)."""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash.

    Args:
        password: Plain text password
        password_hash: stored hash

    Returns:
        True if password matches, False otherwise
    """
    return check_password_hash(password_hash, password)


def burn_password_check(password: str) -> None:
    """Spend one hash verification without a real account."""
    check_password_hash(_DUMMY_HASH, password)


def validate_password_strength(password: str, policy: AuthSettings) -> tuple[bool, str]:
    """Validate password meets complexity requirements.

    Args:
        password: Password to validate
        policy: settings carrying the password_* policy fields

    Returns:
        (is_valid, error_message) tuple
    """
    if len(password) < policy.password_min_length:
        return False, f"Password must be at least {policy.password_min_length} characters"

    if policy.password_require_uppercase and not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"

    if policy.password_require_lowercase and not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"

    if policy.password_require_digit and not re.search(r"\d", password):
        return False, "Password must contain at least one digit"

    if policy.password_require_special and not re.search(r"[^A-Za-z0-9]", password):
        return False, "Password must contain at least one special character"

    return True, ""
