"""
Pydantic schemas for camp endpoints.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt


class CampCreate(BaseModel):
    """Request model for adding a camp.

    ``bed_count`` is validated by the allocation engine.
    """

    name: str = ""
    # StrictInt: JSON true/false must not become 1/0
    bed_count: StrictInt | str | None = Field(
        default=None,
        validation_alias=AliasChoices("bed_count", "bedCount", "beds"),
    )
    location: str = ""
    resources: list[str] | str | None = None
    contact: str = ""
    ambulance: bool = False


class CampUpdate(BaseModel):
    """Request model for editing camp details. Only sent fields change."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    location: str | None = None
    resources: list[str] | str | None = None
    contact: str | None = None
    ambulance: bool | None = None


class CampDeleted(BaseModel):
    """Response model for camp deletion."""

    message: str
    removed_selections: int
