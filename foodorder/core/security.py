"""
Password hashing and token helpers.

Access tokens are short-lived signed JWTs carrying the user's id, email and
role. Refresh tokens are opaque random strings whose only state lives in
the cache layer (see AuthService).
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from foodorder.core.config import get_settings
from foodorder.exceptions import UnauthorizedError

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Verified against when the email is unknown so both branches cost the same.
DUMMY_PASSWORD_HASH = pwd_context.hash("dummy-password-for-timing")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign an access token for the given user."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify signature and expiry of an access token.

    Raises:
        UnauthorizedError: If the token is malformed, forged or expired
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid or expired access token")

    if "sub" not in payload or "email" not in payload:
        raise UnauthorizedError("Malformed access token")
    return payload


def generate_refresh_token() -> str:
    return secrets.token_hex(64)
