#!/usr/bin/env python3
"""
Relief Beds API - HTTP layer for relief camp bed allocation.

Volunteers register camps with bed capacity; refugees register and claim a
bed at exactly one camp. This FastAPI application wires:
- Bearer token authentication (AuthMiddleware)
- The record store (JSON files or PocketBase)
- The AllocationEngine and IdentityService
- Error mapping from the domain error taxonomy to HTTP responses
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relief.auth_middleware import AuthMiddleware
from relief.errors import (
    AllocationBusyError,
    AuthenticationError,
    CapacityExhaustedError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    ReliefError,
)
from relief.logging_config import configure_logging, get_logger
from relief.seed import seed_default_camps
from relief.store import RecordStore

from .dependencies import authenticate_pb, build_services
from .settings import Settings, get_settings

# Format: 2026-01-06T14:05:52Z [api] LEVEL message
configure_logging(source="api")
logger = get_logger(__name__)

# Checked in order; subclasses before their bases
ERROR_STATUS: list[tuple[type[ReliefError], int]] = [
    (InvalidInputError, 400),
    (ConflictError, 400),
    (CapacityExhaustedError, 400),
    (AuthenticationError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (AllocationBusyError, 503),
    (InternalError, 500),
]


def status_for(error: ReliefError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(settings: Settings | None = None, store: RecordStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    services = build_services(settings, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await authenticate_pb(services.store, settings)
        if settings.seed_default_camps:
            await asyncio.to_thread(seed_default_camps, services.store)
        yield

    app = FastAPI(title="Relief Beds API", description="Relief camp bed allocation API", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(ReliefError)
    async def relief_error_handler(request: Request, exc: ReliefError) -> JSONResponse:
        status_code = status_for(exc)
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "error": exc.code})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
        detail = f"{field}: {first.get('msg', 'invalid value')}"
        return JSONResponse(status_code=400, content={"detail": detail, "error": InvalidInputError.code})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "error": "internal"})

    # Authentication runs after CORS due to reverse order
    app.add_middleware(AuthMiddleware, issuer=services.issuer)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    from .routers import auth, camps, selections

    app.include_router(auth.router)
    app.include_router(camps.router)
    app.include_router(selections.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "relief-beds-api", "store": settings.store_backend}

    return app


def main() -> None:
    """Run the API with uvicorn (equivalent to `uvicorn api.main:create_app --factory`)."""
    import uvicorn

    # log_config=None keeps the handlers installed by configure_logging
    uvicorn.run("api.main:create_app", factory=True, host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":
    main()
