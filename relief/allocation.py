"""
Allocation engine - the only code that changes bed counts or selections.

Every mutating operation runs under a single process-wide lock acquired with a
bounded wait, so "read camp, read selections, decide, write" happens as one
unit. Bed count writes are additionally conditional on the value that was
read, and the store rejects a second selection for the same user.

Across processes this only holds where the store makes the conditional write
atomic: the JSON store does so under a file lock on its data directory. The
PocketBase store compares and writes in two requests, so with that backend
only one API process may allocate beds; its unique index on
``selections.user_id`` still stops a user holding two selections.

If the second write of a transition fails, the first is compensated before
the error surfaces.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import (
    AllocationBusyError,
    CapacityExhaustedError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    ReliefError,
)
from .models import (
    CAMPS,
    SELECTIONS,
    USERS,
    AuthUser,
    BedDiscrepancy,
    Camp,
    CampType,
    DiscrepancyKind,
    Role,
    Selection,
    User,
    utcnow,
)
from .store import (
    DuplicateRecordError,
    RecordNotFoundError,
    RecordStore,
    StaleRecordError,
    StoreError,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

EDITABLE_CAMP_FIELDS = {"name", "location", "resources", "contact", "ambulance"}


def authorize(actor: AuthUser, allowed: Iterable[Role], action: str) -> None:
    """Raise ForbiddenError unless the actor's role is in the allowed set."""
    allowed_roles = set(allowed)
    if actor.role not in allowed_roles:
        names = " or ".join(sorted(r.value for r in allowed_roles))
        logger.info(f"Denied {action} for {actor.role.value} {actor.user_id}")
        raise ForbiddenError(f"Only a {names} can {action}")


def parse_bed_count(value: Any) -> int:
    """Accept a non-negative integer (or its decimal string form)."""
    if isinstance(value, bool):
        raise InvalidInputError("Bed count must be a non-negative integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value < 0:
        raise InvalidInputError("Bed count must be a non-negative integer")
    return value


def _parse(model: type[M], record: dict[str, Any]) -> M:
    try:
        return model.model_validate(record)
    except ValidationError as e:
        logger.error(f"Stored {model.__name__} record {record.get('id')} is invalid: {e}")
        raise InternalError("Stored record is invalid") from e


def _bed_count(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


class AllocationEngine:
    """Invariant-preserving transitions over camps and selections."""

    def __init__(self, store: RecordStore, lock_timeout: float = 5.0, cas_attempts: int = 3):
        self.store = store
        self.lock_timeout = lock_timeout
        self.cas_attempts = max(1, cas_attempts)
        self._lock = threading.Lock()

    @contextmanager
    def _storage_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except StoreError as e:
            logger.error(f"Storage failure during {action}: {e}", exc_info=True)
            raise InternalError("Storage failure") from e

    @contextmanager
    def _transition(self, action: str) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            logger.warning(f"Timed out after {self.lock_timeout}s waiting for allocation lock ({action})")
            raise AllocationBusyError("Allocation service is busy, please retry")
        try:
            with self._storage_errors(action):
                yield
        finally:
            self._lock.release()

    # ========================================
    # Record helpers
    # ========================================

    def _get_camp(self, camp_id: str) -> Camp:
        record = self.store.find(CAMPS, camp_id)
        if record is None:
            raise NotFoundError("Camp not found")
        return _parse(Camp, record)

    def _get_user(self, user_id: str) -> User:
        record = self.store.find(USERS, user_id)
        if record is None:
            raise NotFoundError("User not found")
        return _parse(User, record)

    def _selection_for(self, user_id: str) -> Selection | None:
        record = self.store.find_one(SELECTIONS, user_id=user_id)
        return _parse(Selection, record) if record is not None else None

    def _adjust_beds(self, camp_id: str, delta: int) -> bool:
        """Change a camp's bed count with compare-and-swap.

        Returns False when nothing changed because the camp no longer exists
        or an increment would exceed the original bed count.
        """
        for attempt in range(self.cas_attempts):
            record = self.store.find(CAMPS, camp_id)
            if record is None:
                return False
            camp = _parse(Camp, record)
            new_count = camp.current_bed_count + delta
            if new_count < 0:
                raise CapacityExhaustedError(f"No beds available at {camp.name}")
            if new_count > camp.original_bed_count:
                logger.error(
                    f"Camp {camp_id} already has all {camp.original_bed_count} beds free; "
                    f"not incrementing (run scripts/audit_beds.py)"
                )
                return False
            try:
                self.store.update(
                    CAMPS,
                    camp_id,
                    {"current_bed_count": new_count},
                    expected={"current_bed_count": camp.current_bed_count},
                )
                return True
            except StaleRecordError:
                logger.warning(
                    f"Bed count for camp {camp_id} changed concurrently (attempt {attempt + 1}/{self.cas_attempts})"
                )
            except RecordNotFoundError:
                return False
        raise AllocationBusyError("Camp is being updated concurrently, please retry")

    def _compensate(self, camp_id: str, delta: int, action: str) -> None:
        try:
            self._adjust_beds(camp_id, delta)
        except (ReliefError, StoreError) as e:
            logger.error(
                f"Could not undo bed change for camp {camp_id} after failed {action}: {e}; "
                f"bed count may have drifted (run scripts/audit_beds.py)",
                exc_info=True,
            )

    # ========================================
    # Reads
    # ========================================

    def list_camps(self) -> list[Camp]:
        with self._storage_errors("list_camps"):
            records = self.store.all(CAMPS)
        camps = []
        for record in records:
            try:
                camps.append(Camp.model_validate(record))
            except ValidationError as e:
                logger.error(f"Skipping invalid camp record {record.get('id')}: {e}")
        return sorted(camps, key=lambda c: c.created_at.isoformat() if c.created_at else "")

    def get_camp(self, camp_id: str) -> Camp:
        with self._storage_errors("get_camp"):
            return self._get_camp(camp_id)

    def get_selection(self, actor: AuthUser) -> Selection:
        with self._storage_errors("get_selection"):
            selection = self._selection_for(actor.user_id)
        if selection is None:
            raise NotFoundError("No camp selection found")
        return selection

    def camp_selections(self, actor: AuthUser, camp_id: str) -> list[Selection]:
        """Occupancy roster for a camp."""
        authorize(actor, {Role.VOLUNTEER}, "view a camp roster")
        with self._storage_errors("camp_selections"):
            self._get_camp(camp_id)
            return [_parse(Selection, r) for r in self.store.find_by(SELECTIONS, camp_id=camp_id)]

    def audit(self) -> list[BedDiscrepancy]:
        """Find camps whose bed count disagrees with their active selections.

        Works on raw records so that camps the model would reject (more free
        beds than capacity, negative or non-integer counts) are reported rather
        than raised, as are selections pointing at a deleted camp.
        """
        with self._storage_errors("audit"):
            camps = self.store.all(CAMPS)
            selections = self.store.all(SELECTIONS)
        occupied = Counter(r.get("camp_id") for r in selections)

        discrepancies = []
        for record in camps:
            camp_id = record.get("id", "")
            current = _bed_count(record.get("current_bed_count"))
            original = _bed_count(record.get("original_bed_count"))
            active = occupied[camp_id]
            expected = original - active if original is not None else None

            if current is None or original is None:
                kind = DiscrepancyKind.INVALID_RECORD
            elif current > original:
                kind = DiscrepancyKind.OVER_CAPACITY
            elif current < 0:
                kind = DiscrepancyKind.NEGATIVE_BEDS
            elif current != expected:
                kind = DiscrepancyKind.COUNT_MISMATCH
            else:
                continue
            discrepancies.append(
                BedDiscrepancy(
                    camp_id=camp_id,
                    camp_name=str(record.get("name", "")),
                    kind=kind,
                    current_bed_count=current,
                    expected_bed_count=expected,
                    active_selections=active,
                )
            )

        # selections left behind by a camp deletion
        known = {r.get("id") for r in camps}
        orphan_names: dict[str, str] = {}
        for record in selections:
            camp_id = record.get("camp_id")
            if camp_id and camp_id not in known:
                orphan_names.setdefault(camp_id, str(record.get("camp_name", "")))
        for camp_id, camp_name in orphan_names.items():
            discrepancies.append(
                BedDiscrepancy(
                    camp_id=camp_id,
                    camp_name=camp_name,
                    kind=DiscrepancyKind.MISSING_CAMP,
                    active_selections=occupied[camp_id],
                )
            )
        return discrepancies

    # ========================================
    # Transitions
    # ========================================

    def select_camp(self, actor: AuthUser, camp_id: str) -> Selection:
        """Claim one bed at a camp for a refugee."""
        authorize(actor, {Role.REFUGEE}, "select a camp")

        with self._transition("select_camp"):
            camp = self._get_camp(camp_id)
            user = self._get_user(actor.user_id)

            if self._selection_for(user.id) is not None:
                raise ConflictError("You have already selected a camp. Cancel it before choosing another.")
            if camp.current_bed_count <= 0:
                raise CapacityExhaustedError(f"No beds available at {camp.name}")

            if not self._adjust_beds(camp.id, -1):
                raise NotFoundError("Camp not found")

            try:
                record = self.store.insert(
                    SELECTIONS,
                    {
                        "user_id": user.id,
                        "camp_id": camp.id,
                        "user_name": user.name,
                        "camp_name": camp.name,
                        "selected_at": utcnow().isoformat(),
                    },
                )
            except DuplicateRecordError as e:
                self._compensate(camp.id, +1, "select_camp")
                raise ConflictError("You have already selected a camp. Cancel it before choosing another.") from e
            except StoreError:
                self._compensate(camp.id, +1, "select_camp")
                raise

        selection = _parse(Selection, record)
        logger.info(f"User {user.id} selected camp {camp.id} ({camp.current_bed_count - 1} beds left)")
        return selection

    def cancel_selection(self, actor: AuthUser) -> Selection:
        """Release the actor's bed and delete their selection."""
        with self._transition("cancel_selection"):
            selection = self._selection_for(actor.user_id)
            if selection is None:
                raise NotFoundError("No camp selection found")

            incremented = self._adjust_beds(selection.camp_id, +1)
            if not incremented:
                logger.info(f"Camp {selection.camp_id} no longer takes back beds; removing selection only")

            try:
                self.store.delete(SELECTIONS, selection.id)
            except RecordNotFoundError:
                logger.warning(f"Selection {selection.id} disappeared during cancellation")
            except StoreError:
                if incremented:
                    self._compensate(selection.camp_id, -1, "cancel_selection")
                raise

        logger.info(f"User {actor.user_id} cancelled selection of camp {selection.camp_id}")
        return selection

    def add_camp(
        self,
        actor: AuthUser,
        name: str,
        bed_count: Any,
        resources: list[str] | str | None = None,
        contact: str = "",
        ambulance: bool = False,
        location: str = "",
    ) -> Camp:
        authorize(actor, {Role.VOLUNTEER}, "add a camp")

        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Camp name is required")
        beds = parse_bed_count(bed_count)

        try:
            draft = Camp(
                id="pending",
                name=name,
                location=location or "",
                current_bed_count=beds,
                original_bed_count=beds,
                resources=resources,  # type: ignore[arg-type]
                contact=contact or "",
                ambulance=ambulance,
                type=CampType.VOLUNTEER_ADDED,
                created_by=actor.user_id,
                created_at=utcnow(),
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid camp details: {e.errors()[0]['msg']}") from e

        with self._transition("add_camp"):
            record = self.store.insert(CAMPS, draft.to_record())

        camp = _parse(Camp, record)
        logger.info(f"Volunteer {actor.user_id} added camp {camp.id} '{camp.name}' with {beds} beds")
        return camp

    def update_camp_details(self, actor: AuthUser, camp_id: str, changes: dict[str, Any]) -> Camp:
        """Owner-only edit of camp metadata. Bed counts are never touched."""
        authorize(actor, {Role.VOLUNTEER}, "edit a camp")

        unknown = set(changes) - EDITABLE_CAMP_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot change: {', '.join(sorted(unknown))}")
        if "name" in changes:
            changes = {**changes, "name": (changes["name"] or "").strip()}
            if not changes["name"]:
                raise InvalidInputError("Camp name is required")

        with self._transition("update_camp_details"):
            camp = self._get_camp(camp_id)
            if camp.is_default:
                raise ForbiddenError("Default camps cannot be edited")
            if camp.created_by != actor.user_id:
                raise ForbiddenError("Only the volunteer who added this camp can edit it")

            try:
                edited = Camp.model_validate({**camp.model_dump(), **changes})
            except ValidationError as e:
                raise InvalidInputError(f"Invalid camp details: {e.errors()[0]['msg']}") from e

            record = edited.to_record()
            updated = self.store.update(CAMPS, camp.id, {k: record[k] for k in changes})

            if edited.name != camp.name:
                for s in self.store.find_by(SELECTIONS, camp_id=camp.id):
                    self.store.update(SELECTIONS, s["id"], {"camp_name": edited.name})

        logger.info(f"Volunteer {actor.user_id} updated camp {camp_id}: {sorted(changes)}")
        return _parse(Camp, updated)

    def delete_camp(self, actor: AuthUser, camp_id: str) -> int:
        """Delete a volunteer-added camp and cascade its selections.

        Returns the number of selections removed. Affected refugees are left
        without a camp.
        """
        authorize(actor, {Role.VOLUNTEER}, "delete a camp")

        with self._transition("delete_camp"):
            camp = self._get_camp(camp_id)
            if camp.is_default:
                raise ForbiddenError("Default camps cannot be deleted")

            stranded = self.store.find_by(SELECTIONS, camp_id=camp.id)
            # Camp first: a selection left behind by a failed cascade points
            # at a missing camp, which cancel_selection already tolerates.
            self.store.delete(CAMPS, camp.id)
            for s in stranded:
                try:
                    self.store.delete(SELECTIONS, s["id"])
                except RecordNotFoundError:
                    pass

        if stranded:
            logger.warning(
                f"Deleted camp {camp_id} '{camp.name}'; {len(stranded)} refugee selection(s) removed without reassignment"
            )
        else:
            logger.info(f"Deleted camp {camp_id} '{camp.name}'")
        return len(stranded)
