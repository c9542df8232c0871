"""
JWT issuing and validation for identity + role tokens.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, cast

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from .models import AuthUser, Role, User, utcnow

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "relief-beds"


class TokenIssuer:
    """Signs and validates HMAC JWTs carrying user id, email and role."""

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_hours: float = 24):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = timedelta(hours=ttl_hours)

    def issue(self, user: User) -> str:
        """Issue a signed token for a stored user."""
        now = utcnow()
        payload = {
            "sub": user.id,
            "user_id": user.id,
            "email": user.email,
            "role": user.role.value,
            "iss": TOKEN_ISSUER,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """Decode and verify a token, raising InvalidTokenError on any problem."""
        return cast(
            dict[str, Any],
            jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=TOKEN_ISSUER,
                options={"require": ["exp", "iat", "sub"]},
            ),
        )

    def validate_token(self, token: str) -> AuthUser | None:
        """
        Validate a token and return the principal it names.

        Returns None for expired, tampered or malformed tokens.
        """
        try:
            claims = self.decode(token)
            return AuthUser(
                user_id=str(claims["user_id"]),
                email=str(claims.get("email", "")),
                role=Role(claims["role"]),
            )
        except ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return None
        except (KeyError, ValueError) as e:
            logger.warning(f"Token is missing identity claims: {e}")
            return None


def extract_bearer_token(authorization_header: str | None) -> str | None:
    """Extract bearer token from Authorization header."""
    if not authorization_header:
        return None

    parts = authorization_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
