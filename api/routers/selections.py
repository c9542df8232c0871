"""
Selections Router - The caller's own camp selection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from relief.allocation import AllocationEngine
from relief.auth_middleware import get_current_user
from relief.models import AuthUser, Selection

from ..dependencies import get_engine
from ..schemas import SelectionCancelled

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/selections", tags=["selections"])


@router.get("/my")
async def get_my_selection(
    user: Annotated[AuthUser, Depends(get_current_user)],
    engine: Annotated[AllocationEngine, Depends(get_engine)],
) -> Selection:
    return await asyncio.to_thread(engine.get_selection, user)


@router.delete("/my")
async def cancel_my_selection(
    user: Annotated[AuthUser, Depends(get_current_user)],
    engine: Annotated[AllocationEngine, Depends(get_engine)],
) -> SelectionCancelled:
    """Give the caller's bed back to the camp."""
    selection = await asyncio.to_thread(engine.cancel_selection, user)
    return SelectionCancelled(message="Camp selection cancelled successfully", selection=selection)
