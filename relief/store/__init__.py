"""
Record store backends for camps, users and selections.
"""

from __future__ import annotations

from .base import (
    UNIQUE_FIELDS,
    DuplicateRecordError,
    RecordNotFoundError,
    RecordStore,
    StaleRecordError,
    StoreError,
    StoreUnavailableError,
)
from .json_store import JsonFileRecordStore
from .pocketbase_store import PocketBaseRecordStore

__all__ = [
    "UNIQUE_FIELDS",
    "DuplicateRecordError",
    "JsonFileRecordStore",
    "PocketBaseRecordStore",
    "RecordNotFoundError",
    "RecordStore",
    "StaleRecordError",
    "StoreError",
    "StoreUnavailableError",
]
