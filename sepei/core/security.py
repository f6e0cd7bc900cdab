"""Password hashing, member session tokens and the admin panel JWT."""
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import argon2
import jwt
from fastapi import HTTPException, Request

from sepei.core import config
from sepei.core.constants import SESSION_TOKEN_BYTES

# Argon2 hasher for member passwords and a hashed ADMIN_PASSWORD
ph = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,
    parallelism=1,
    hash_len=32,
    salt_len=16
)

ADMIN_CLAIM = "is_admin"


def get_password_hash(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against an Argon2 hash. Malformed hashes never match."""
    try:
        return ph.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


# Member sessions

def generate_session_token() -> str:
    """Random URL-safe token handed to a member once, at login."""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def create_token_lookup_key(token: str) -> str:
    """Keyed SHA-256 of a session token, the only form stored in the database.

    Tokens are random and high-entropy, so a deterministic HMAC keeps raw
    tokens out of the database while still allowing an indexed lookup.

    Returns:
        64-character hex digest
    """
    return hmac.new(
        config.settings.SECRET_KEY.encode(),
        token.encode(),
        hashlib.sha256
    ).hexdigest()


# Admin panel

def verify_admin_password(password: str) -> bool:
    """Compare against ADMIN_PASSWORD, which may be an Argon2 hash or plaintext."""
    stored_password = config.settings.ADMIN_PASSWORD

    if stored_password.startswith("$argon2"):
        return verify_password(password, stored_password)
    return hmac.compare_digest(password.encode(), stored_password.encode())


def create_admin_token(expires_delta: Optional[timedelta] = None) -> str:
    """Signed JWT granting access to the admin endpoints."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=config.settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": "admin",
        ADMIN_CLAIM: True,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, config.settings.SECRET_KEY, algorithm=config.settings.ALGORITHM)


def verify_admin_token(request: Request) -> dict:
    """
    FastAPI dependency guarding the admin router.

    Raises:
        HTTPException: 401 when the cookie is missing, expired or forged,
        403 when a valid token lacks the admin claim
    """
    token = request.cookies.get(config.settings.ADMIN_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = jwt.decode(token, config.settings.SECRET_KEY, algorithms=[config.settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if payload.get(ADMIN_CLAIM) is not True:
        raise HTTPException(status_code=403, detail="Not authorized")
    return payload
