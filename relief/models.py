from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CAMPS = "camps"
USERS = "users"
SELECTIONS = "selections"


def utcnow() -> datetime:
    return datetime.now(UTC)


class Role(Enum):
    VOLUNTEER = "volunteer"
    REFUGEE = "refugee"


class CampType(Enum):
    DEFAULT = "default"
    VOLUNTEER_ADDED = "volunteer-added"


class AuthUser:
    """The principal resolved from a bearer token."""

    def __init__(self, user_id: str, email: str, role: Role):
        self.user_id = user_id
        self.email = email
        self.role = role

    def to_dict(self) -> dict[str, Any]:
        """Convert principal to dictionary for JSON serialization."""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role.value,
        }


def _split_resources(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, str):
        return [r.strip() for r in v.split(",") if r.strip()]
    return v


class Camp(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    location: str = ""
    current_bed_count: int = Field(ge=0)
    original_bed_count: int = Field(ge=0)
    resources: list[str] = Field(default_factory=list)
    contact: str = ""
    ambulance: bool = False
    type: CampType = CampType.VOLUNTEER_ADDED
    created_by: str | None = None
    created_at: datetime | None = None

    @field_validator("resources", mode="before")
    @classmethod
    def parse_resources(cls, v: Any) -> Any:
        return _split_resources(v)

    @field_validator("created_by", mode="before")
    @classmethod
    def blank_creator_is_none(cls, v: Any) -> Any:
        # PocketBase returns "" for an unset relation
        return v or None

    @model_validator(mode="after")
    def check_bed_counts(self) -> Camp:
        if self.current_bed_count > self.original_bed_count:
            raise ValueError(
                f"current_bed_count {self.current_bed_count} exceeds original_bed_count {self.original_bed_count}"
            )
        return self

    @property
    def is_default(self) -> bool:
        return self.type == CampType.DEFAULT

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    email: str
    password_hash: str
    role: Role
    phone: str = ""
    # refugee
    address: str = ""
    needs: str = ""
    # volunteer
    skills: list[str] = Field(default_factory=list)
    availability: str = ""
    created_at: datetime | None = None

    @field_validator("skills", mode="before")
    @classmethod
    def parse_skills(cls, v: Any) -> Any:
        return _split_resources(v)

    def public_dict(self) -> dict[str, Any]:
        """User fields safe to return to clients."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class Selection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    camp_id: str
    user_name: str = ""
    camp_name: str = ""
    selected_at: datetime | None = None


class DiscrepancyKind(Enum):
    COUNT_MISMATCH = "count_mismatch"
    OVER_CAPACITY = "over_capacity"
    NEGATIVE_BEDS = "negative_beds"
    INVALID_RECORD = "invalid_record"
    MISSING_CAMP = "missing_camp"


class BedDiscrepancy(BaseModel):
    """A camp whose bed count disagrees with its active selections.

    Bed counts are None when they could not be read: the camp record is gone
    (``MISSING_CAMP``) or holds non-integer counts (``INVALID_RECORD``).
    """

    camp_id: str
    camp_name: str
    kind: DiscrepancyKind = DiscrepancyKind.COUNT_MISMATCH
    current_bed_count: int | None = None
    expected_bed_count: int | None = None
    active_selections: int
