"""
Pydantic schemas for registration, login and token verification.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class RegisterRequest(BaseModel):
    """Request model for account registration.

    Required fields are checked by the identity service so that a missing
    field is reported the same way as any other invalid input.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None
    phone: str | None = None
    # refugee
    address: str | None = None
    needs: str | None = None
    # volunteer
    skills: list[str] | str | None = None
    availability: str | None = None


class LoginRequest(BaseModel):
    """Request model for login."""

    email: str = ""
    password: str = ""


class AuthResponse(BaseModel):
    """Response model for register and login."""

    message: str
    user: dict[str, Any]
    token: str


class VerifyResponse(BaseModel):
    """Response model for token verification."""

    valid: bool = True
    user: dict[str, Any]
