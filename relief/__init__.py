"""
Relief - Core business logic for relief camp bed allocation.

This package contains:
- allocation: AllocationEngine, the only code that changes bed counts or selections
- identity: registration, login and token verification
- store: record store backends (JSON files, PocketBase)
- models: Camp, User, Selection and the authenticated principal
"""

from relief.allocation import AllocationEngine
from relief.identity import IdentityService
from relief.models import AuthUser, Camp, CampType, Role, Selection, User

__all__ = [
    "AllocationEngine",
    "AuthUser",
    "Camp",
    "CampType",
    "IdentityService",
    "Role",
    "Selection",
    "User",
]
