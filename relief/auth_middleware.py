"""
Bearer token authentication middleware and the current-user dependency.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from .jwt_auth import TokenIssuer, extract_bearer_token
from .models import AuthUser

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/register", "/login", "/health", "/docs", "/openapi.json"})


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Resolve the caller's identity from the Authorization header.

    - no bearer token: 401
    - token present but expired, tampered or malformed: 403
    """

    def __init__(self, app: Any, issuer: TokenIssuer, public_paths: Iterable[str] = PUBLIC_PATHS):
        super().__init__(app)
        self.issuer = issuer
        self.public_paths = frozenset(public_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.public_paths or request.method == "OPTIONS":
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        if not token:
            logger.debug(f"No bearer token for {request.method} {request.url.path}")
            # Return JSONResponse instead of raising HTTPException
            # (BaseHTTPMiddleware wraps raised exceptions causing 500 errors)
            return JSONResponse(status_code=401, content={"detail": "Access token required"})

        user = self.issuer.validate_token(token)
        if user is None:
            logger.warning(f"Rejected token for {request.method} {request.url.path}")
            return JSONResponse(status_code=403, content={"detail": "Invalid or expired token"})

        request.state.user = user
        logger.debug(f"Authenticated {user.role.value} {user.user_id} for {request.url.path}")
        return await call_next(request)


def get_current_user(request: Request) -> AuthUser:
    """
    Dependency to get the current authenticated user.

    Usage:
        @router.get("/protected")
        async def protected_route(user: AuthUser = Depends(get_current_user)):
            return {"user_id": user.user_id}
    """
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=401, detail="Access token required")
    return user  # type: ignore[no-any-return]

