"""
Auth Router - Registration, login and token verification.

These are the only endpoints reachable without a bearer token (except /verify,
which checks one).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from relief.auth_middleware import get_current_user
from relief.identity import IdentityService
from relief.models import AuthUser

from ..dependencies import get_identity
from ..schemas import AuthResponse, LoginRequest, RegisterRequest, VerifyResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    identity: Annotated[IdentityService, Depends(get_identity)],
) -> AuthResponse:
    """Create a volunteer or refugee account."""
    user, token = await asyncio.to_thread(identity.register, request.model_dump(exclude_none=True))
    return AuthResponse(message="User registered successfully", user=user.public_dict(), token=token)


@router.post("/login")
async def login(
    request: LoginRequest,
    identity: Annotated[IdentityService, Depends(get_identity)],
) -> AuthResponse:
    """Exchange email and password for an access token."""
    user, token = await asyncio.to_thread(identity.login, request.email, request.password)
    return AuthResponse(message="Login successful", user=user.public_dict(), token=token)


@router.get("/verify")
async def verify(
    user: Annotated[AuthUser, Depends(get_current_user)],
    identity: Annotated[IdentityService, Depends(get_identity)],
) -> VerifyResponse:
    """Confirm the bearer token still names an existing user."""
    stored = await asyncio.to_thread(identity.verify, user)
    return VerifyResponse(user=stored.public_dict())
