"""
Password hashing utilities.

Opaque credential service: callers only ever hash and verify.
"""

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)
