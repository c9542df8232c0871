"""Record store interface.

The allocation engine and identity service only ever talk to a RecordStore.
Records are plain dicts carrying a string ``id``; backends decide how the
three collections (users, camps, selections) are persisted.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields that must be unique within a collection
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "users": ("email",),
    "selections": ("user_id",),
}


class StoreError(Exception):
    """Base exception for record store failures."""

    pass


class RecordNotFoundError(StoreError):
    """Raised when updating or deleting a record that does not exist."""

    pass


class DuplicateRecordError(StoreError):
    """Raised when an insert would violate a unique field."""

    def __init__(self, collection: str, field: str, value: Any):
        super().__init__(f"{collection}.{field} must be unique (got {value!r})")
        self.collection = collection
        self.field = field
        self.value = value


class StaleRecordError(StoreError):
    """Raised when a conditional update finds an unexpected current value."""

    pass


class StoreUnavailableError(StoreError):
    """Raised when the backing storage keeps failing after retries."""

    pass


class RecordStore(ABC):
    """Durable key-value persistence for camp, user and selection records."""

    def __init__(self, retry_attempts: int = 3, retry_delay: float = 0.05) -> None:
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay

    @abstractmethod
    def all(self, collection: str) -> list[dict[str, Any]]:
        """Return every record in a collection."""

    @abstractmethod
    def find(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Return one record by id, or None."""

    @abstractmethod
    def find_by(self, collection: str, **fields: Any) -> list[dict[str, Any]]:
        """Return records whose fields equal all the given values."""

    @abstractmethod
    def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it with its assigned id."""

    @abstractmethod
    def update(
        self,
        collection: str,
        record_id: str,
        changes: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Apply changes to a record and return the updated record.

        When ``expected`` is given, the update only happens if every expected
        field still holds that value; otherwise StaleRecordError is raised.
        """

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Delete a record by id."""

    def find_one(self, collection: str, **fields: Any) -> dict[str, Any] | None:
        matches = self.find_by(collection, **fields)
        return matches[0] if matches else None

    def _is_transient(self, error: Exception) -> bool:
        """Whether an error from the backend is worth retrying."""
        return False

    def _with_retries(self, operation: str, fn: Callable[[], T]) -> T:
        """Run fn, retrying transient backend failures with backoff."""
        for attempt in range(self.retry_attempts):
            try:
                return fn()
            except StoreError:
                raise
            except Exception as e:
                if not self._is_transient(e):
                    raise
                if attempt == self.retry_attempts - 1:
                    logger.error(f"Store {operation} failed after {self.retry_attempts} attempts: {e}")
                    raise StoreUnavailableError(f"{operation} failed: {e}") from e
                wait_time = self.retry_delay * (2**attempt)
                logger.warning(
                    f"Transient store error during {operation} "
                    f"(attempt {attempt + 1}/{self.retry_attempts}), retrying in {wait_time:.2f}s: {e}"
                )
                time.sleep(wait_time)

        # This should never be reached, but satisfies type checker
        raise StoreUnavailableError(f"{operation} failed: unexpected error in retry loop")
