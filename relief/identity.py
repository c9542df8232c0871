"""
Registration, login and token verification.

Registration of a given email is serialized by a lock and backed by the
store's unique constraint on users.email.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from pydantic import ValidationError

from .errors import AuthenticationError, ConflictError, InternalError, InvalidInputError, NotFoundError
from .jwt_auth import TokenIssuer
from .models import USERS, AuthUser, Role, User, utcnow
from .passwords import hash_password, verify_password
from .store import DuplicateRecordError, RecordStore, StoreError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

REQUIRED_FIELDS = ("name", "email", "password", "role")
ROLE_FIELDS = {
    Role.REFUGEE: ("address", "needs"),
    Role.VOLUNTEER: ("skills", "availability"),
}


class IdentityService:
    """Account registration and credential checks."""

    def __init__(self, store: RecordStore, issuer: TokenIssuer, bcrypt_rounds: int = 12):
        self.store = store
        self.issuer = issuer
        self.bcrypt_rounds = bcrypt_rounds
        self._register_lock = threading.Lock()

    def _find_by_email(self, email: str) -> User | None:
        record = self.store.find_one(USERS, email=email)
        return User.model_validate(record) if record is not None else None

    def register(self, payload: dict[str, Any]) -> tuple[User, str]:
        """Create an account and return it with a fresh token."""
        missing = [f for f in REQUIRED_FIELDS if not str(payload.get(f) or "").strip()]
        if missing:
            raise InvalidInputError(f"Missing required fields: {', '.join(missing)}")

        try:
            role = Role(str(payload["role"]).strip().lower())
        except ValueError:
            raise InvalidInputError("Role must be 'volunteer' or 'refugee'") from None

        email = str(payload["email"]).strip().lower()
        if "@" not in email:
            raise InvalidInputError("Email address is invalid")
        password = str(payload["password"])
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        record: dict[str, Any] = {
            "name": str(payload["name"]).strip(),
            "email": email,
            "role": role.value,
            "phone": str(payload.get("phone") or ""),
            "created_at": utcnow().isoformat(),
        }
        for field in ROLE_FIELDS[role]:
            if payload.get(field) is not None:
                record[field] = payload[field]
        record["password_hash"] = hash_password(password, rounds=self.bcrypt_rounds)

        try:
            with self._register_lock:
                if self._find_by_email(email) is not None:
                    raise ConflictError("User already exists")
                stored = self.store.insert(USERS, record)
            user = User.model_validate(stored)
        except DuplicateRecordError as e:
            raise ConflictError("User already exists") from e
        except ValidationError as e:
            raise InvalidInputError(f"Invalid registration details: {e.errors()[0]['msg']}") from e
        except StoreError as e:
            logger.error(f"Storage failure during registration: {e}", exc_info=True)
            raise InternalError("Storage failure") from e

        logger.info(f"Registered {role.value} {user.id}")
        return user, self.issuer.issue(user)

    def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and return the user with a fresh token."""
        try:
            user = self._find_by_email((email or "").strip().lower())
        except StoreError as e:
            logger.error(f"Storage failure during login: {e}", exc_info=True)
            raise InternalError("Storage failure") from e

        if user is None or not verify_password(password or "", user.password_hash):
            logger.info("Rejected login with invalid credentials")
            raise AuthenticationError("Invalid credentials")

        return user, self.issuer.issue(user)

    def verify(self, actor: AuthUser) -> User:
        """Resolve a token's principal to its stored user."""
        try:
            record = self.store.find(USERS, actor.user_id)
        except StoreError as e:
            logger.error(f"Storage failure during token verification: {e}", exc_info=True)
            raise InternalError("Storage failure") from e
        if record is None:
            raise NotFoundError("User not found")
        return User.model_validate(record)
