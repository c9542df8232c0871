"""
Root test configuration and fixtures for the relief beds project.

Provides:
- a JSON record store in a temporary directory
- an AllocationEngine and IdentityService over that store
- factories for users and camps that bypass bcrypt for speed
- a mock PocketBase client so no test reaches a real server

Note: sys.path manipulation is handled here to ensure imports work correctly.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import Mock, patch

import pytest

# Add project root to path to allow imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from relief.allocation import AllocationEngine  # noqa: E402
from relief.identity import IdentityService  # noqa: E402
from relief.jwt_auth import TokenIssuer  # noqa: E402
from relief.models import CAMPS, USERS, AuthUser, Camp, CampType, Role, utcnow  # noqa: E402
from relief.store import JsonFileRecordStore  # noqa: E402

TEST_JWT_SECRET = "test-secret-for-relief-beds-unit-tests-0123456789"


def create_mock_pocketbase() -> Mock:
    """Create a mock PocketBase instance whose collections all share one mock."""
    mock_pb = Mock()
    mock_collection = Mock()

    mock_collection.auth_with_password = Mock(return_value=True)
    mock_collection.get_full_list = Mock(return_value=[])
    mock_collection.get_one = Mock()
    mock_collection.create = Mock(return_value=Mock(id="mock-id"))
    mock_collection.update = Mock()
    mock_collection.delete = Mock()

    mock_pb.collection = Mock(return_value=mock_collection)
    return mock_pb


@pytest.fixture
def mock_pocketbase() -> Mock:
    """Create a mock PocketBase instance for tests that need it."""
    return create_mock_pocketbase()


@pytest.fixture(autouse=True)
def mock_all_external_services():
    """Make sure a configured PocketBase backend never opens a real connection."""
    if os.environ.get("SKIP_MOCKING") == "true":
        yield {}
        return

    mock_pb = create_mock_pocketbase()
    with patch("api.dependencies.PocketBase", return_value=mock_pb):
        yield {"pocketbase": mock_pb}


@pytest.fixture
def store(tmp_path: Path) -> JsonFileRecordStore:
    return JsonFileRecordStore(tmp_path / "data", retry_delay=0)


@pytest.fixture
def engine(store: JsonFileRecordStore) -> AllocationEngine:
    return AllocationEngine(store, lock_timeout=5.0)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_JWT_SECRET)


@pytest.fixture
def identity(store: JsonFileRecordStore, issuer: TokenIssuer) -> IdentityService:
    return IdentityService(store, issuer, bcrypt_rounds=4)


@pytest.fixture
def make_user(store: JsonFileRecordStore) -> Callable[..., AuthUser]:
    """Insert a user record directly and return its principal."""
    counter = {"n": 0}

    def _make(role: Role = Role.REFUGEE, name: str | None = None) -> AuthUser:
        counter["n"] += 1
        n = counter["n"]
        record = store.insert(
            USERS,
            {
                "name": name or f"{role.value.title()} {n}",
                "email": f"{role.value}{n}@example.com",
                "password_hash": "not-a-real-hash",
                "role": role.value,
                "created_at": utcnow().isoformat(),
            },
        )
        return AuthUser(user_id=record["id"], email=record["email"], role=role)

    return _make


@pytest.fixture
def make_camp(store: JsonFileRecordStore) -> Callable[..., Camp]:
    """Insert a camp record directly and return it."""

    def _make(
        beds: int = 10,
        camp_type: CampType = CampType.VOLUNTEER_ADDED,
        name: str = "Riverside School Camp",
        created_by: str | None = None,
        **extra: Any,
    ) -> Camp:
        camp = Camp(
            id="pending",
            name=name,
            current_bed_count=extra.pop("current", beds),
            original_bed_count=beds,
            type=camp_type,
            created_by=created_by,
            created_at=utcnow(),
            **extra,
        )
        return Camp.model_validate(store.insert(CAMPS, camp.to_record()))

    return _make


@pytest.fixture
def volunteer(make_user: Callable[..., AuthUser]) -> AuthUser:
    return make_user(Role.VOLUNTEER, name="Vera Volunteer")


@pytest.fixture
def refugee(make_user: Callable[..., AuthUser]) -> AuthUser:
    return make_user(Role.REFUGEE, name="Ravi Refugee")
