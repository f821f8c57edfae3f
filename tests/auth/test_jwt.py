"""Tests for JWT verification and caller resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from civic_rewards.auth.dependencies import Principal, require_elevated, resolve_user
from civic_rewards.auth.jwt import create_access_token, verify_token
from civic_rewards.errors import ForbiddenError


def _encode(**claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": "u1", "iat": now, "exp": now + timedelta(minutes=5), "iss": "civic-identity", **claims}
    return jwt.encode(payload, "test-secret", algorithm="HS256")


class TestVerifyToken:
    def test_round_trip(self):
        payload = verify_token(create_access_token("u1", role="admin"))
        assert payload["sub"] == "u1"
        assert payload["role"] == "admin"

    def test_role_defaults_to_user(self):
        assert verify_token(_encode())["role"] == "user"

    def test_unknown_role_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="Unknown role"):
            verify_token(_encode(role="superuser"))

    def test_wrong_issuer_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(_encode(iss="someone-else"))

    def test_expired_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(_encode(exp=past))

    def test_wrong_type_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(_encode(type="refresh"))

    def test_bad_signature_rejected(self):
        token = jwt.encode({"sub": "u1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
                            "iss": "civic-identity"}, "other-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)


class TestResolveUser:
    def test_me_alias(self):
        assert resolve_user(Principal("u1"), "me") == "u1"

    def test_self(self):
        assert resolve_user(Principal("u1"), "u1") == "u1"

    def test_other_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            resolve_user(Principal("u1"), "u2")

    @pytest.mark.parametrize("role", ["admin", "service"])
    def test_elevated_roles_may_read_others(self, role):
        assert resolve_user(Principal("u1", role), "u2") == "u2"

    def test_require_elevated(self):
        require_elevated(Principal("svc", "service"))
        with pytest.raises(ForbiddenError):
            require_elevated(Principal("u1"))
