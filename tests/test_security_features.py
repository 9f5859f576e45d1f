from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from jose import jwt

from roster.errors import ApiError, AuthorizationError, ForbiddenError
from roster.models import UserRole
from roster.security import (
    Actor,
    create_access_token,
    decode_access_token,
    ensure_login_attempt_allowed,
    hash_password,
    register_login_failure,
    register_login_success,
    verify_admin_credentials,
    verify_password,
)
from roster.settings import get_settings


class SecurityFeatureTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()

    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_access_token_roundtrip_preserves_actor(self) -> None:
        actor = Actor(actor_id="user:3", username="clerk", role=UserRole.STAFF)
        token, expires_in = create_access_token(actor=actor)

        self.assertEqual(expires_in, get_settings().access_token_minutes * 60)
        decoded = decode_access_token(token)
        self.assertEqual(decoded, actor)
        self.assertFalse(decoded.is_admin)

    def test_token_signed_with_other_secret_is_rejected(self) -> None:
        token, _ = create_access_token(actor=Actor(actor_id="admin", username="admin", role=UserRole.ADMIN))
        with patch.dict(os.environ, {"JWT_SECRET": "a-completely-different-secret"}, clear=False):
            get_settings.cache_clear()
            with self.assertRaises(AuthorizationError) as ctx:
                decode_access_token(token)
        self.assertEqual(ctx.exception.status_code, 401)

    def test_unknown_role_claim_is_forbidden(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "x",
                "role": "superuser",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "iat": 1_700_000_000,
                "exp": 4_100_000_000,
                "typ": "access",
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with self.assertRaises(ForbiddenError) as ctx:
            decode_access_token(token)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_non_access_token_type_is_rejected(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "admin",
                "role": "admin",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "iat": 1_700_000_000,
                "exp": 4_100_000_000,
                "typ": "refresh",
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with self.assertRaises(AuthorizationError):
            decode_access_token(token)

    def test_env_admin_credentials_accept_quoted_hash(self) -> None:
        password_hash = hash_password("Str0ng-pass!")
        with patch.dict(
            os.environ,
            {"ADMIN_USER": "'roster-admin'", "ADMIN_PASS_HASH": f'"{password_hash}"'},
            clear=False,
        ):
            get_settings.cache_clear()
            self.assertTrue(verify_admin_credentials("roster-admin", "Str0ng-pass!"))
            self.assertFalse(verify_admin_credentials("roster-admin", "wrong"))
            self.assertFalse(verify_admin_credentials("someone", "Str0ng-pass!"))

    def test_verify_password_tolerates_garbage_hash(self) -> None:
        self.assertFalse(verify_password("anything", "not-a-hash"))

    def test_login_throttle_blocks_after_repeated_failures(self) -> None:
        ip = "203.0.113.9"
        register_login_success(ip)
        try:
            for _ in range(10):
                ensure_login_attempt_allowed(ip)
                register_login_failure(ip)
            with self.assertRaises(ApiError) as ctx:
                ensure_login_attempt_allowed(ip)
            self.assertEqual(ctx.exception.status_code, 429)

            register_login_success(ip)
            ensure_login_attempt_allowed(ip)
        finally:
            register_login_success(ip)


if __name__ == "__main__":
    unittest.main()
