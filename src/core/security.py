"""Helpers for the auth provider's JWT access tokens."""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from .config import settings


class TokenDecodeError(Exception):
    """Raised when a JWT cannot be decoded or is invalid."""


def create_access_token(subject: str, email: str | None = None, expires_minutes: int | None = None) -> str:
    """Mint a token with the auth provider's claim shape (`sub`, `email`, `aud`).

    Production tokens come from the provider; this is for local tooling and tests.
    """
    expire_in = expires_minutes or settings.jwt_expires_in_minutes
    to_encode: dict[str, Any] = {
        "sub": subject,
        "exp": datetime.now(tz=timezone.utc) + timedelta(minutes=expire_in),
    }
    if email:
        to_encode["email"] = email
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT, raising TokenDecodeError on failure."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as exc:
        raise TokenDecodeError("Invalid token") from exc
