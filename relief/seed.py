"""Default relief camps created on first boot."""

from __future__ import annotations

import logging
from typing import Any

from .models import CAMPS, Camp, CampType, utcnow
from .store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CAMPS: list[dict[str, Any]] = [
    {
        "name": "Government Higher Secondary School Relief Camp",
        "location": "Chengannur",
        "beds": 120,
        "resources": ["Food", "Drinking water", "Blankets", "First aid"],
        "contact": "+91 479 245 0000",
        "ambulance": True,
    },
    {
        "name": "St. Mary's Church Hall Camp",
        "location": "Aluva",
        "beds": 60,
        "resources": ["Food", "Drinking water", "Clothing"],
        "contact": "+91 484 262 0000",
        "ambulance": False,
    },
    {
        "name": "Town Hall Community Shelter",
        "location": "Thrissur",
        "beds": 80,
        "resources": ["Food", "Medicines", "Sanitation kits"],
        "contact": "+91 487 233 0000",
        "ambulance": True,
    },
]


def seed_default_camps(store: RecordStore, camps: list[dict[str, Any]] | None = None) -> int:
    """Insert the default camps when the camps collection is empty.

    Returns the number of camps created.
    """
    if store.all(CAMPS):
        logger.debug("Camps already present, skipping default seed")
        return 0

    created = 0
    for entry in DEFAULT_CAMPS if camps is None else camps:
        camp = Camp(
            id="pending",
            name=entry["name"],
            location=entry.get("location", ""),
            current_bed_count=entry["beds"],
            original_bed_count=entry["beds"],
            resources=entry.get("resources", []),
            contact=entry.get("contact", ""),
            ambulance=entry.get("ambulance", False),
            type=CampType.DEFAULT,
            created_by=None,
            created_at=utcnow(),
        )
        store.insert(CAMPS, camp.to_record())
        created += 1

    logger.info(f"Seeded {created} default camps")
    return created
