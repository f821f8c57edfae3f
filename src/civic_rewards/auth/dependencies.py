"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from civic_rewards.auth.jwt import verify_token
from civic_rewards.errors import ForbiddenError

_bearer = HTTPBearer()

ELEVATED_ROLES = frozenset({"admin", "service"})


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str = "user"

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> Principal:
    """
    Verify the bearer token and return the caller.

    Raises 401 on a missing, expired or malformed token.
    """
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return Principal(user_id=str(payload["sub"]), role=payload["role"])


def resolve_user(principal: Principal, user_id: str) -> str:
    """Resolve the ``me`` alias and enforce self-or-elevated access."""
    if user_id == "me":
        return principal.user_id
    if user_id != principal.user_id and not principal.is_elevated:
        raise ForbiddenError("Not allowed to access another user's data", user_id=user_id)
    return user_id


def require_elevated(principal: Principal) -> None:
    if not principal.is_elevated:
        raise ForbiddenError("Administrator access required")
