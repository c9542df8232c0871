"""
Shared dependencies for the relief API.

This module provides:
- Record store construction for the configured backend
- PocketBase superuser authentication
- The service container kept on app.state and the FastAPI dependencies reading it
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass

from fastapi import Request

from pocketbase import PocketBase
from relief.allocation import AllocationEngine
from relief.identity import IdentityService
from relief.jwt_auth import TokenIssuer
from relief.store import JsonFileRecordStore, PocketBaseRecordStore, RecordStore

from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived collaborators shared by every request."""

    store: RecordStore
    issuer: TokenIssuer
    engine: AllocationEngine
    identity: IdentityService


def build_store(settings: Settings) -> RecordStore:
    """Create the record store selected by STORE_BACKEND."""
    if settings.store_backend == "pocketbase":
        logger.info(f"Using PocketBase record store at {settings.pocketbase_url}")
        return PocketBaseRecordStore(
            PocketBase(settings.pocketbase_url),
            retry_attempts=settings.store_retry_attempts,
            retry_delay=settings.store_retry_delay,
        )
    return JsonFileRecordStore(
        settings.data_dir,
        retry_attempts=settings.store_retry_attempts,
        retry_delay=settings.store_retry_delay,
    )


def build_services(settings: Settings, store: RecordStore | None = None) -> Services:
    """Wire the store, token issuer, allocation engine and identity service."""
    store = store if store is not None else build_store(settings)

    secret = settings.jwt_secret
    if not secret:
        logger.warning(
            "SECURITY WARNING: JWT_SECRET is not set. Using a random secret; "
            "issued tokens will stop working when the process restarts."
        )
        secret = secrets.token_urlsafe(48)

    issuer = TokenIssuer(secret, algorithm=settings.jwt_algorithm, ttl_hours=settings.token_ttl_hours)
    return Services(
        store=store,
        issuer=issuer,
        engine=AllocationEngine(store, lock_timeout=settings.allocation_lock_timeout),
        identity=IdentityService(store, issuer, bcrypt_rounds=settings.bcrypt_rounds),
    )


async def authenticate_pb(store: RecordStore, settings: Settings) -> None:
    """Authenticate the PocketBase store's client as a superuser."""
    if not isinstance(store, PocketBaseRecordStore):
        return
    try:
        await asyncio.to_thread(
            store.pb.collection("_superusers").auth_with_password,
            settings.pocketbase_admin_email,
            settings.pocketbase_admin_password,
        )
        logger.info("Successfully authenticated with PocketBase")
    except Exception as e:
        logger.error(f"Failed to authenticate with PocketBase: {e}")
        raise


def get_services(request: Request) -> Services:
    services: Services = request.app.state.services
    return services


def get_engine(request: Request) -> AllocationEngine:
    return get_services(request).engine


def get_identity(request: Request) -> IdentityService:
    return get_services(request).identity
