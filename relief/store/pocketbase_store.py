"""PocketBase-backed record store.

Collections ``users``, ``camps`` and ``selections`` are expected to exist on
the PocketBase server with unique indexes on ``users.email`` and
``selections.user_id``. The client must already be authenticated as a
superuser (see ``api.dependencies.authenticate_pb``).

Conditional updates read the record and compare before writing. That check
is only atomic together with the allocation lock of a single API process.
"""

from __future__ import annotations

import logging
from typing import Any

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from ..logging_config import TRACE
from .base import (
    DuplicateRecordError,
    RecordNotFoundError,
    RecordStore,
    StaleRecordError,
)

logger = logging.getLogger(__name__)

# Record attributes added by PocketBase that are not part of our schema
_SYSTEM_FIELDS = {"collection_id", "collection_name", "expand", "created", "updated"}


def _quote(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_filter(fields: dict[str, Any]) -> str:
    """Build a PocketBase filter expression matching all fields exactly."""
    return " && ".join(f"{name} = {_quote(value)}" for name, value in fields.items())


def record_to_dict(record: Any) -> dict[str, Any]:
    """Convert a PocketBase Record into a plain dict."""
    data = {k: v for k, v in vars(record).items() if k not in _SYSTEM_FIELDS and not k.startswith("_")}
    data["id"] = record.id
    return data


def _unique_violation(error: ClientResponseError) -> str | None:
    """Return the field name of a validation_not_unique error, if any."""
    payload = error.data if isinstance(error.data, dict) else {}
    for field, detail in (payload.get("data") or {}).items():
        if isinstance(detail, dict) and detail.get("code") == "validation_not_unique":
            return str(field)
    return None


class PocketBaseRecordStore(RecordStore):
    """Record store persisting collections in a PocketBase server."""

    def __init__(self, pb_client: PocketBase, retry_attempts: int = 3, retry_delay: float = 0.05) -> None:
        super().__init__(retry_attempts=retry_attempts, retry_delay=retry_delay)
        self.pb = pb_client

    def _is_transient(self, error: Exception) -> bool:
        # status 0 means the request never got a response
        return isinstance(error, ClientResponseError) and (error.status == 0 or error.status >= 500)

    def all(self, collection: str) -> list[dict[str, Any]]:
        query_params = {"sort": "created"}
        logger.log(TRACE, f"GET {collection} query_params={query_params}")
        records = self._with_retries(
            f"read {collection}",
            lambda: self.pb.collection(collection).get_full_list(query_params=query_params),
        )
        return [record_to_dict(r) for r in records]

    def find(self, collection: str, record_id: str) -> dict[str, Any] | None:
        logger.log(TRACE, f"GET {collection}/{record_id}")

        def _get_one() -> Any:
            try:
                return self.pb.collection(collection).get_one(record_id)
            except ClientResponseError as e:
                if e.status == 404:
                    return None
                raise

        record = self._with_retries(f"get {collection}/{record_id}", _get_one)
        return record_to_dict(record) if record is not None else None

    def find_by(self, collection: str, **fields: Any) -> list[dict[str, Any]]:
        query_params = {"filter": build_filter(fields)} if fields else {}
        logger.log(TRACE, f"GET {collection} query_params={query_params}")
        records = self._with_retries(
            f"query {collection}",
            lambda: self.pb.collection(collection).get_full_list(query_params=query_params),
        )
        return [record_to_dict(r) for r in records]

    def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        def _create() -> Any:
            try:
                return self.pb.collection(collection).create(data)
            except ClientResponseError as e:
                field = _unique_violation(e)
                if field is not None:
                    raise DuplicateRecordError(collection, field, data.get(field)) from e
                raise

        record = self._with_retries(f"insert into {collection}", _create)
        logger.debug(f"Created {collection}/{record.id}")
        return record_to_dict(record)

    def update(
        self,
        collection: str,
        record_id: str,
        changes: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if expected:
            current = self.find(collection, record_id)
            if current is None:
                raise RecordNotFoundError(f"{collection}/{record_id} not found")
            for field, value in expected.items():
                if current.get(field) != value:
                    raise StaleRecordError(
                        f"{collection}/{record_id}: {field} is {current.get(field)!r}, expected {value!r}"
                    )

        def _update() -> Any:
            try:
                return self.pb.collection(collection).update(record_id, changes)
            except ClientResponseError as e:
                if e.status == 404:
                    raise RecordNotFoundError(f"{collection}/{record_id} not found") from e
                raise

        record = self._with_retries(f"update {collection}/{record_id}", _update)
        return record_to_dict(record)

    def delete(self, collection: str, record_id: str) -> None:
        def _delete() -> None:
            try:
                self.pb.collection(collection).delete(record_id)
            except ClientResponseError as e:
                if e.status == 404:
                    raise RecordNotFoundError(f"{collection}/{record_id} not found") from e
                raise

        self._with_retries(f"delete {collection}/{record_id}", _delete)
