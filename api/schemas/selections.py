"""
Pydantic schemas for selection endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel

from relief.models import Selection


class SelectionCancelled(BaseModel):
    """Response model for a cancelled selection."""

    message: str
    selection: Selection
