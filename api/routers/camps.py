"""
Camps Router - Endpoints for listing, adding, editing and deleting camps,
and for claiming a bed at a camp.

Every mutation is delegated to the AllocationEngine, which runs it in a
worker thread under the allocation lock.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from relief.allocation import AllocationEngine
from relief.auth_middleware import get_current_user
from relief.models import AuthUser, Camp, Selection

from ..dependencies import get_engine
from ..schemas import CampCreate, CampDeleted, CampUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/camps", tags=["camps"])

CampId = Annotated[str, Path(description="Camp ID")]
Engine = Annotated[AllocationEngine, Depends(get_engine)]
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]


@router.get("")
async def list_camps(user: CurrentUser, engine: Engine) -> list[Camp]:
    """List every camp with its current bed count."""
    return await asyncio.to_thread(engine.list_camps)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_camp(request: CampCreate, user: CurrentUser, engine: Engine) -> Camp:
    """Register a new camp (volunteers only)."""
    return await asyncio.to_thread(
        engine.add_camp,
        user,
        name=request.name,
        bed_count=request.bed_count,
        resources=request.resources,
        contact=request.contact,
        ambulance=request.ambulance,
        location=request.location,
    )


@router.get("/{camp_id}")
async def get_camp(camp_id: CampId, user: CurrentUser, engine: Engine) -> Camp:
    return await asyncio.to_thread(engine.get_camp, camp_id)


@router.patch("/{camp_id}")
async def update_camp(camp_id: CampId, request: CampUpdate, user: CurrentUser, engine: Engine) -> Camp:
    """Edit a camp's details (the volunteer who added it only)."""
    changes = request.model_dump(exclude_unset=True)
    return await asyncio.to_thread(engine.update_camp_details, user, camp_id, changes)


@router.delete("/{camp_id}")
async def delete_camp(camp_id: CampId, user: CurrentUser, engine: Engine) -> CampDeleted:
    """Delete a volunteer-added camp along with its selections."""
    removed = await asyncio.to_thread(engine.delete_camp, user, camp_id)
    return CampDeleted(message="Camp deleted successfully", removed_selections=removed)


@router.post("/{camp_id}/select")
async def select_camp(camp_id: CampId, user: CurrentUser, engine: Engine) -> Selection:
    """Claim one bed at a camp (refugees only, one camp per person)."""
    return await asyncio.to_thread(engine.select_camp, user, camp_id)


@router.get("/{camp_id}/selections")
async def camp_roster(camp_id: CampId, user: CurrentUser, engine: Engine) -> list[Selection]:
    """Refugees currently holding a bed at a camp (volunteers only)."""
    return await asyncio.to_thread(engine.camp_selections, user, camp_id)
