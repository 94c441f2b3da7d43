"""Password hashing with bcrypt."""

import bcrypt


def hash_password(password: str) -> str:
    """Hash a plain-text password with a fresh bcrypt salt.

    Args:
        password: Password as entered by the user.

    Returns:
        The bcrypt hash, decoded to ``str`` for storage in ``users.hashed_password``.
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain-text password against a stored bcrypt hash.

    Args:
        plain_password: Password supplied at login.
        hashed_password: Hash previously produced by ``hash_password``.

    Returns:
        True when the password matches.
    """
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
