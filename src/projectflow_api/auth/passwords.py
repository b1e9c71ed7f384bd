"""
Password hashing.

bcrypt through passlib; plaintext passwords are never stored.
"""

import secrets

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(raw_password: str) -> str:
    return pwd_context.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> bool:
    """False for empty input instead of raising."""
    if not raw_password or not hashed_password:
        return False
    return pwd_context.verify(raw_password, hashed_password)


def generate_temporary_password() -> str:
    """Twelve hex characters, sent once in the employee welcome email."""
    return secrets.token_hex(6)
