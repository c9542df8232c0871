"""File-backed record store.

Each collection lives in its own JSON file (``users.json``, ``camps.json``,
``selections.json``) holding a list of records. Files are loaded wholesale and
rewritten wholesale through a temp file and an atomic rename.

Every operation holds an exclusive ``flock`` on ``.store.lock`` in the data
directory, so stores in different processes sharing one directory see each
other's writes and cannot interleave a read-check-write.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from uuid import uuid4

from ..logging_config import TRACE

from .base import (
    UNIQUE_FIELDS,
    DuplicateRecordError,
    RecordNotFoundError,
    RecordStore,
    StaleRecordError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

LOCK_FILE = ".store.lock"


class JsonFileRecordStore(RecordStore):
    """Record store persisting each collection as a JSON file in a directory."""

    def __init__(
        self,
        data_dir: str | Path,
        unique_fields: dict[str, tuple[str, ...]] | None = None,
        retry_attempts: int = 3,
        retry_delay: float = 0.05,
    ) -> None:
        super().__init__(retry_attempts=retry_attempts, retry_delay=retry_delay)
        self.data_dir = Path(data_dir)
        self.unique_fields = UNIQUE_FIELDS if unique_fields is None else unique_fields
        self._lock = threading.Lock()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"JSON record store at {self.data_dir.resolve()}")

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the thread lock and the cross-process file lock. Not reentrant."""
        with self._lock, open(self.data_dir / LOCK_FILE, "a") as lock_fd:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _is_transient(self, error: Exception) -> bool:
        return isinstance(error, OSError)

    def _load(self, collection: str) -> list[dict[str, Any]]:
        path = self._path(collection)
        logger.log(TRACE, f"Loading {path}")
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as f:
            try:
                records = json.load(f)
            except json.JSONDecodeError as e:
                raise StoreUnavailableError(f"{path} is not valid JSON: {e}") from e
        if not isinstance(records, list):
            raise StoreUnavailableError(f"{path} must contain a list of records")
        return records

    def _save(self, collection: str, records: list[dict[str, Any]]) -> None:
        path = self._path(collection)
        logger.log(TRACE, f"Saving {len(records)} records to {path}")
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{collection}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def all(self, collection: str) -> list[dict[str, Any]]:
        with self._exclusive():
            return self._with_retries(f"read {collection}", lambda: self._load(collection))

    def find(self, collection: str, record_id: str) -> dict[str, Any] | None:
        for record in self.all(collection):
            if record.get("id") == record_id:
                return record
        return None

    def find_by(self, collection: str, **fields: Any) -> list[dict[str, Any]]:
        return [r for r in self.all(collection) if all(r.get(k) == v for k, v in fields.items())]

    def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        def _insert() -> dict[str, Any]:
            records = self._load(collection)
            for field in self.unique_fields.get(collection, ()):
                value = data.get(field)
                if value is not None and any(r.get(field) == value for r in records):
                    raise DuplicateRecordError(collection, field, value)
            record = {**data, "id": data.get("id") or uuid4().hex}
            records.append(record)
            self._save(collection, records)
            return record

        with self._exclusive():
            return self._with_retries(f"insert into {collection}", _insert)

    def update(
        self,
        collection: str,
        record_id: str,
        changes: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        def _update() -> dict[str, Any]:
            records = self._load(collection)
            for i, record in enumerate(records):
                if record.get("id") != record_id:
                    continue
                if expected:
                    for field, value in expected.items():
                        if record.get(field) != value:
                            raise StaleRecordError(
                                f"{collection}/{record_id}: {field} is {record.get(field)!r}, expected {value!r}"
                            )
                records[i] = {**record, **changes, "id": record_id}
                self._save(collection, records)
                return records[i]
            raise RecordNotFoundError(f"{collection}/{record_id} not found")

        with self._exclusive():
            return self._with_retries(f"update {collection}", _update)

    def delete(self, collection: str, record_id: str) -> None:
        def _delete() -> None:
            records = self._load(collection)
            remaining = [r for r in records if r.get("id") != record_id]
            if len(remaining) == len(records):
                raise RecordNotFoundError(f"{collection}/{record_id} not found")
            self._save(collection, remaining)

        with self._exclusive():
            self._with_retries(f"delete from {collection}", _delete)
