"""Authentication utilities: password hashing and signed access tokens."""

from datetime import datetime, timedelta

import jwt
from passlib.context import CryptContext

# Configure bcrypt to avoid compatibility issues with bcrypt 4.0+
PWD_CONTEXT = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=12,
)


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password for storage."""
    return PWD_CONTEXT.hash(plain_password)


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Verify a plaintext password against its hash."""
    if not password_hash:
        return False
    return PWD_CONTEXT.verify(plain_password, password_hash)


def create_access_token(data: dict, secret: str, algorithm: str, expires_delta: timedelta) -> str:
    """Sign ``data`` into a JWT that expires after ``expires_delta``."""
    payload = dict(data)
    payload["exp"] = datetime.utcnow() + expires_delta
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str) -> dict:
    """Decode and verify a JWT.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
    """
    return jwt.decode(token, secret, algorithms=[algorithm])
