"""
JWT verification for tokens issued by the identity service.

Tokens carry ``sub`` (the user id) and ``role``. RS256 deployments point
``jwt_public_key_path`` at the identity service's public key; HS256
deployments share ``jwt_secret``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from civic_rewards.config import get_settings

_verification_key: str | None = None

ROLES = ("user", "admin", "service")


def _load_verification_key() -> str:
    """Load the key used to verify signatures (cached after first call)."""
    global _verification_key  # noqa: PLW0603
    if _verification_key is None:
        settings = get_settings()
        if settings.jwt_public_key_path:
            _verification_key = Path(settings.jwt_public_key_path).read_text()
        else:
            _verification_key = settings.jwt_secret
    return _verification_key


def reset_keys() -> None:
    """Reset the cached key (useful for testing)."""
    global _verification_key  # noqa: PLW0603
    _verification_key = None


def create_access_token(user_id: str, role: str = "user", signing_key: str | None = None) -> str:
    """
    Create an access token the way the identity service does.

    Used for service-to-service calls and local tooling. ``signing_key``
    defaults to the shared secret, which only works for HS256.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, signing_key or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, of the wrong
            type, or carries an unknown role.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _load_verification_key(),
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type", "access") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    if payload.setdefault("role", "user") not in ROLES:
        msg = f"Unknown role '{payload['role']}'"
        raise jwt.InvalidTokenError(msg)

    return payload
