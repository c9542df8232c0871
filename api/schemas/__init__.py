"""
Pydantic schemas for the relief API.

Re-exports all schemas for convenient importing.
"""

from __future__ import annotations

from .auth import AuthResponse, LoginRequest, RegisterRequest, VerifyResponse
from .camps import CampCreate, CampDeleted, CampUpdate
from .selections import SelectionCancelled

__all__ = [
    # Auth
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    "VerifyResponse",
    # Camps
    "CampCreate",
    "CampDeleted",
    "CampUpdate",
    # Selections
    "SelectionCancelled",
]
