"""Password hashing with bcrypt."""

import bcrypt

MIN_PASSWORD_LENGTH = 8
BCRYPT_ROUNDS = 10


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password into a bcrypt string."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Check a password against a stored hash.

    Empty passwords and missing hashes never match.
    """
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def is_acceptable_password(password: str) -> bool:
    """Whether a new password meets the minimum length."""
    return len(password) >= MIN_PASSWORD_LENGTH
