"""Fixtures for HTTP-level tests against the FastAPI app."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from api.settings import Settings
from relief.store import JsonFileRecordStore


@pytest.fixture
def settings(tmp_path, issuer) -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret=issuer.secret,
        bcrypt_rounds=4,
        data_dir=tmp_path / "data",
        seed_default_camps=False,
    )


@pytest.fixture
def client(settings: Settings, store: JsonFileRecordStore) -> Generator[TestClient, None, None]:
    """TestClient over the app; entering the context runs the lifespan."""
    with TestClient(create_app(settings, store)) as test_client:
        yield test_client


@pytest.fixture
def register(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Register an account over HTTP and return {"user", "token", "headers"}."""
    counter = {"n": 0}

    def _register(role: str = "refugee", **fields: Any) -> dict[str, Any]:
        counter["n"] += 1
        payload = {
            "name": f"{role.title()} {counter['n']}",
            "email": f"{role}{counter['n']}@example.com",
            "password": "secret123",
            "role": role,
            **fields,
        }
        response = client.post("/register", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "user": body["user"],
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _register


@pytest.fixture
def volunteer_headers(register) -> dict[str, str]:
    return register("volunteer")["headers"]


@pytest.fixture
def refugee_headers(register) -> dict[str, str]:
    return register("refugee")["headers"]
