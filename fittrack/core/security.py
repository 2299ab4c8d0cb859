"""Password hashing for credential-based accounts."""

from typing import Optional

import bcrypt

BCRYPT_ROUNDS = 10


def get_password_hash(password: str) -> str:
    """Hash a password with a fresh bcrypt salt.

    Args:
        password: Plain text password.

    Returns:
        Hashed password.
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain password against a stored hash.

    Accounts created through an external sign-in have no hash and never
    match.

    Args:
        plain_password: Plain text password.
        hashed_password: Stored bcrypt hash, or None.

    Returns:
        True if password matches, False otherwise.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Malformed hash in storage
        return False
