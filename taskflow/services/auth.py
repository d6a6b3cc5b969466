"""
Token and password utilities.

Access tokens are short-lived JWTs carrying the user's ``id`` and ``email``;
refresh tokens are signed with a separate secret and live for days. Both
verification helpers return None instead of raising, callers decide how to
reject unauthenticated requests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from taskflow.config import Settings, get_settings

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10


@dataclass(frozen=True)
class Identity:
    """Authenticated user identity extracted from a verified token."""

    user_id: int
    email: str | None


# ---------------------------------------------------------
# Passwords
# ---------------------------------------------------------


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        logger.warning("Invalid bcrypt hash encountered")
        return False


# ---------------------------------------------------------
# JWT
# ---------------------------------------------------------


def _encode(payload: dict[str, Any], secret: str, expires_in: timedelta, algorithm: str) -> str:
    now = datetime.now(timezone.utc)
    claims = {**payload, "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret, algorithm=algorithm)


def _decode(token: str, secret: str, algorithm: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug("Invalid token: %s", e)
        return None


def create_access_token(payload: dict[str, Any], settings: Settings | None = None) -> str:
    """Create a short-lived access token. Payload is ``{"id": ..., "email": ...}``."""
    settings = settings or get_settings()
    return _encode(
        payload,
        settings.jwt_access_secret,
        timedelta(minutes=settings.jwt_access_expiration_minutes),
        settings.jwt_algorithm,
    )


def create_refresh_token(payload: dict[str, Any], settings: Settings | None = None) -> str:
    """Create a long-lived refresh token."""
    settings = settings or get_settings()
    return _encode(
        payload,
        settings.jwt_refresh_secret,
        refresh_token_lifetime(settings),
        settings.jwt_algorithm,
    )


def verify_access_token(token: str, settings: Settings | None = None) -> dict[str, Any] | None:
    """Decode an access token, or None if invalid or expired."""
    settings = settings or get_settings()
    return _decode(token, settings.jwt_access_secret, settings.jwt_algorithm)


def verify_refresh_token(token: str, settings: Settings | None = None) -> dict[str, Any] | None:
    """Decode a refresh token, or None if invalid or expired."""
    settings = settings or get_settings()
    return _decode(token, settings.jwt_refresh_secret, settings.jwt_algorithm)


def refresh_token_lifetime(settings: Settings | None = None) -> timedelta:
    settings = settings or get_settings()
    return timedelta(days=settings.jwt_refresh_expiration_days)


def refresh_token_expiration(settings: Settings | None = None) -> datetime:
    """Absolute expiry of a refresh token issued now (stored with the token row)."""
    return datetime.now(timezone.utc) + refresh_token_lifetime(settings)


class TokenVerifier:
    """
    Validates bearer credentials presented at WebSocket handshake
    (and by HTTP dependencies).
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def verify(self, token: str | None) -> Identity | None:
        """Return the identity for a valid access token, None otherwise."""
        if not token:
            return None

        claims = verify_access_token(token, self.settings)
        if not claims:
            return None

        user_id = claims.get("id")
        if user_id is None:
            logger.debug("Token has no id claim")
            return None

        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            logger.debug("Token id claim is not an integer: %r", user_id)
            return None

        return Identity(user_id=user_id, email=claims.get("email"))
