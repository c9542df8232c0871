"""Tests for jwt_auth module - token issuing and validation with PyJWT."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from relief.jwt_auth import TOKEN_ISSUER, TokenIssuer, extract_bearer_token
from relief.models import Role, User, utcnow

SECRET = "jwt-test-secret-0123456789abcdef0123456789"


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(SECRET)


@pytest.fixture
def stored_user() -> User:
    return User(
        id="abc123",
        name="Vera Volunteer",
        email="vera@example.com",
        password_hash="x",
        role=Role.VOLUNTEER,
        created_at=utcnow(),
    )


def encode(payload: dict, secret: str = SECRET, algorithm: str = "HS256") -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


class TestTokenIssuer:
    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenIssuer("")

    def test_issue_carries_identity_claims(self, token_issuer, stored_user):
        claims = token_issuer.decode(token_issuer.issue(stored_user))

        assert claims["sub"] == "abc123"
        assert claims["user_id"] == "abc123"
        assert claims["email"] == "vera@example.com"
        assert claims["role"] == "volunteer"
        assert claims["iss"] == TOKEN_ISSUER

    def test_default_lifetime_is_24_hours(self, token_issuer, stored_user):
        claims = token_issuer.decode(token_issuer.issue(stored_user))
        assert claims["exp"] - claims["iat"] == 24 * 3600

    def test_custom_lifetime(self, stored_user):
        issuer = TokenIssuer(SECRET, ttl_hours=1)
        claims = issuer.decode(issuer.issue(stored_user))
        assert claims["exp"] - claims["iat"] == 3600

    def test_validate_token_roundtrip(self, token_issuer, stored_user):
        user = token_issuer.validate_token(token_issuer.issue(stored_user))

        assert user is not None
        assert user.user_id == "abc123"
        assert user.email == "vera@example.com"
        assert user.role is Role.VOLUNTEER


class TestValidateTokenRejections:
    def _claims(self, **overrides):
        now = utcnow()
        claims = {
            "sub": "abc123",
            "user_id": "abc123",
            "email": "vera@example.com",
            "role": "refugee",
            "iss": TOKEN_ISSUER,
            "iat": now,
            "exp": now + timedelta(hours=1),
        }
        claims.update(overrides)
        return {k: v for k, v in claims.items() if v is not None}

    def test_expired(self, token_issuer):
        past = utcnow() - timedelta(hours=2)
        token = encode(self._claims(iat=past, exp=past + timedelta(hours=1)))
        assert token_issuer.validate_token(token) is None

    def test_wrong_secret(self, token_issuer):
        token = encode(self._claims(), secret="another-secret-0123456789abcdef0123456789")
        assert token_issuer.validate_token(token) is None

    def test_wrong_issuer(self, token_issuer):
        assert token_issuer.validate_token(encode(self._claims(iss="someone-else"))) is None

    def test_missing_exp(self, token_issuer):
        assert token_issuer.validate_token(encode(self._claims(exp=None))) is None

    def test_unknown_role(self, token_issuer):
        assert token_issuer.validate_token(encode(self._claims(role="admin"))) is None

    def test_missing_user_id(self, token_issuer):
        assert token_issuer.validate_token(encode(self._claims(user_id=None))) is None

    def test_tampered_payload(self, token_issuer, stored_user):
        header, _, signature = token_issuer.issue(stored_user).split(".")
        forged = encode(self._claims(role="volunteer"), secret="x" * 32).split(".")[1]
        assert token_issuer.validate_token(f"{header}.{forged}.{signature}") is None

    def test_garbage(self, token_issuer):
        assert token_issuer.validate_token("not-a-jwt") is None

    def test_algorithm_none_rejected(self, token_issuer):
        token = jwt.encode(self._claims(), None, algorithm="none")
        assert token_issuer.validate_token(token) is None


class TestExtractBearerToken:
    def test_extract_valid_bearer_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_extract_lowercase_bearer(self):
        assert extract_bearer_token("bearer token123") == "token123"

    def test_extract_none_header(self):
        assert extract_bearer_token(None) is None

    def test_extract_empty_header(self):
        assert extract_bearer_token("") is None

    def test_extract_wrong_scheme(self):
        assert extract_bearer_token("Basic dXNlcjpwYXNz") is None

    def test_extract_no_token(self):
        assert extract_bearer_token("Bearer") is None

    def test_extract_too_many_parts(self):
        assert extract_bearer_token("Bearer token extra") is None
