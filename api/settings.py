"""
Application settings using pydantic-settings for type-safe configuration.

All environment variables are centralized here with proper typing, validation,
and sensible defaults. Settings are loaded once at startup and cached.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development.
    Production values should be set via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # === Tokens ===
    jwt_secret: str = Field(
        default="",
        description="HMAC secret for signing access tokens (random per process when empty)",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    token_ttl_hours: float = Field(default=24, gt=0, description="Access token lifetime in hours")
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor for password hashes")

    # === Record Store ===
    store_backend: str = Field(
        default="json",
        description="Record store backend: 'json' (files in data_dir) or 'pocketbase'",
    )
    data_dir: Path = Field(default=Path("data"), description="Directory holding users/camps/selections JSON files")
    store_retry_attempts: int = Field(default=3, ge=1, description="Attempts for transient storage failures")
    store_retry_delay: float = Field(default=0.05, ge=0, description="Initial retry backoff in seconds")

    # === PocketBase Configuration ===
    pocketbase_url: str = Field(default="http://127.0.0.1:8090", description="PocketBase server URL")
    pocketbase_admin_email: str = Field(default="admin@relief.local", description="PocketBase superuser email")
    pocketbase_admin_password: str = Field(default="", description="PocketBase superuser password")

    # === Allocation ===
    allocation_lock_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for the allocation lock before answering 503",
    )
    seed_default_camps: bool = Field(default=True, description="Create the default camps when none exist")

    # === CORS Configuration ===
    # Note: Use str type for env var parsing, convert to list via property
    allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="ALLOWED_ORIGINS",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins(self) -> list[str]:
        """Parse comma-separated origins string into list."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    @field_validator("store_backend", mode="after")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "pocketbase"):
            raise ValueError(f"Invalid STORE_BACKEND: {v}. Must be 'json' or 'pocketbase'")
        return v

    @field_validator("jwt_secret", mode="after")
    @classmethod
    def warn_weak_secret(cls, v: str) -> str:
        if v and len(v) < 32:
            logger.warning(
                "SECURITY WARNING: JWT_SECRET is shorter than 32 characters. "
                "Use a long random value in production."
            )
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
