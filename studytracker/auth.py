"""
auth.py — Password hashing and bearer tokens
bcrypt hashes for stored passwords; signed JWTs carrying the user id for
every authenticated request.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Request, HTTPException, status
from jose import jwt, JWTError

from studytracker.config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRY_HOURS

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and newer releases raise beyond that
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a login attempt; a corrupt stored hash counts as a mismatch."""
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.warning(f"Stored password hash could not be checked: {e}")
        return False


def create_token(claims: dict) -> str:
    """Sign ``claims`` with an expiry and a unique token id."""
    payload = {
        **claims,
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRY_HOURS),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def issue_token(user) -> str:
    return create_token({"user_id": user.id, "email": user.email})


def verify_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request) -> int:
    """
    FastAPI dependency: reads ``Authorization: Bearer <jwt>`` and returns the
    user id it was issued for. Missing, malformed, expired or id-less tokens
    are all a 401.
    """
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        raise _unauthorized("Missing or invalid Authorization header")

    payload = verify_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("user_id")
    if user_id is None:
        raise _unauthorized("Token payload missing user id")
    return user_id
