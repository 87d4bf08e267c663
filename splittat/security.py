"""
Password hashing and bearer tokens.

Passwords are stored as bcrypt hashes. Access tokens are HS256 JWTs scoped to
this API by issuer and audience; nothing about a token is kept server-side.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

TOKEN_TYPE = "access"


# ==================== PASSWORD HASHING ====================


def hash_password(password: str) -> str:
    """bcrypt hash of ``password`` using the configured cost factor."""
    salt = bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check ``password`` against a stored hash. A malformed hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.error("Password verification failed", error=str(e))
        return False


# ==================== JWT TOKENS ====================


def create_access_token(user_id: str, email: str) -> Tuple[str, datetime]:
    """
    Create a signed JWT access token.

    Args:
        user_id: User's UUID, stored as the ``sub`` claim
        email: User's email

    Returns:
        Tuple of (encoded token, expiry timestamp)
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": str(user_id),
        "email": email,
        "type": TOKEN_TYPE,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": now,
        "exp": expire,
    }

    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    logger.debug("Created access token", user_id=str(user_id), expires_at=expire.isoformat())
    return token, expire


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Signature, issuer, audience and expiry are all checked, with no clock
    leeway.

    Args:
        token: JWT token string

    Returns:
        Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            leeway=0,
            options={"require": ["sub", "exp", "iat"]},
        )

        if payload.get("type") != TOKEN_TYPE:
            logger.warning("Invalid token type")
            return None

        return payload

    except ExpiredSignatureError:
        logger.debug("Access token expired")
        return None
    except InvalidTokenError as e:
        logger.warning("Invalid access token", error=str(e))
        return None
