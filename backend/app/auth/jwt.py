"""JWT access/refresh tokens for coaches, clients and admins."""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import settings

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


class TokenError(JWTError):
    """A token that decodes fine but cannot identify a user."""


def _encode(data: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    claims = {**data, "exp": now + lifetime, "iat": now, "type": token_type}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token.

    ``data`` must include ``sub`` (user UUID as string). Defaults to
    ``settings.jwt_access_token_expire_minutes``.
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, ACCESS_TOKEN, lifetime)


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a long-lived refresh token (``settings.jwt_refresh_token_expire_days``)."""
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(data, REFRESH_TOKEN, lifetime)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def user_id_from_token(token: str, expected_type: str) -> uuid.UUID:
    """Verify ``token`` and return the user id in its ``sub`` claim.

    Raises:
        TokenError: Wrong token type, or a missing / malformed ``sub``.
        jose.JWTError: Bad signature, expired, or not a JWT at all.
    """
    payload = decode_token(token)
    if payload.get("type") != expected_type:
        raise TokenError("Invalid token type")

    sub = payload.get("sub")
    if sub is None:
        raise TokenError("Invalid token payload")
    try:
        return uuid.UUID(sub)
    except ValueError:
        raise TokenError("Invalid token payload") from None


def create_token_pair(user_id: str, role: str | None = None) -> dict[str, str]:
    """Create both access and refresh tokens for a user.

    Args:
        user_id: The user's UUID as a string.
        role: Optional role claim (``coach``, ``client`` or ``admin``). The
            claim is informational only; dependencies always re-read the
            role from the database.

    Returns:
        Dictionary with ``access_token``, ``refresh_token``, and ``token_type``.
    """
    payload = {"sub": user_id}
    if role is not None:
        payload["role"] = role
    return {
        "access_token": create_access_token(payload),
        "refresh_token": create_refresh_token(payload),
        "token_type": "bearer",
    }
