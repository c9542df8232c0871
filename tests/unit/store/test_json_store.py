"""Tests for JsonFileRecordStore."""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from relief.logging_config import TRACE
from relief.store import (
    DuplicateRecordError,
    JsonFileRecordStore,
    RecordNotFoundError,
    StaleRecordError,
    StoreUnavailableError,
)


class TestBasicOperations:
    def test_empty_collection(self, store):
        assert store.all("camps") == []
        assert store.find("camps", "missing") is None
        assert store.find_one("camps", name="x") is None

    def test_insert_assigns_id_and_persists(self, store):
        record = store.insert("camps", {"name": "North Camp", "current_bed_count": 4})

        assert record["id"]
        assert store.find("camps", record["id"]) == record
        on_disk = json.loads((store.data_dir / "camps.json").read_text())
        assert on_disk == [record]

    def test_collections_are_separate_files(self, store):
        store.insert("camps", {"name": "A"})
        store.insert("users", {"email": "a@example.com"})

        assert sorted(p.name for p in store.data_dir.glob("*.json")) == ["camps.json", "users.json"]

    def test_find_by_matches_all_fields(self, store):
        store.insert("selections", {"user_id": "u1", "camp_id": "c1"})
        store.insert("selections", {"user_id": "u2", "camp_id": "c1"})
        store.insert("selections", {"user_id": "u3", "camp_id": "c2"})

        assert {r["user_id"] for r in store.find_by("selections", camp_id="c1")} == {"u1", "u2"}
        assert store.find_by("selections", camp_id="c1", user_id="u3") == []

    def test_update_merges_changes(self, store):
        record = store.insert("camps", {"name": "A", "current_bed_count": 3})

        updated = store.update("camps", record["id"], {"current_bed_count": 2})

        assert updated == {"id": record["id"], "name": "A", "current_bed_count": 2}
        assert store.find("camps", record["id"]) == updated

    def test_delete(self, store):
        record = store.insert("camps", {"name": "A"})
        store.delete("camps", record["id"])
        assert store.all("camps") == []

    def test_missing_records_raise(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update("camps", "missing", {"name": "B"})
        with pytest.raises(RecordNotFoundError):
            store.delete("camps", "missing")

    def test_reopening_reads_existing_data(self, store):
        record = store.insert("camps", {"name": "A"})
        reopened = JsonFileRecordStore(store.data_dir)
        assert reopened.find("camps", record["id"]) == record


class TestConstraints:
    def test_unique_selection_per_user(self, store):
        store.insert("selections", {"user_id": "u1", "camp_id": "c1"})
        with pytest.raises(DuplicateRecordError) as exc_info:
            store.insert("selections", {"user_id": "u1", "camp_id": "c2"})
        assert exc_info.value.field == "user_id"
        assert len(store.all("selections")) == 1

    def test_unique_email(self, store):
        store.insert("users", {"email": "a@example.com"})
        with pytest.raises(DuplicateRecordError):
            store.insert("users", {"email": "a@example.com"})

    def test_conditional_update_succeeds_on_match(self, store):
        record = store.insert("camps", {"current_bed_count": 3})
        updated = store.update("camps", record["id"], {"current_bed_count": 2}, expected={"current_bed_count": 3})
        assert updated["current_bed_count"] == 2

    def test_conditional_update_rejects_stale_value(self, store):
        record = store.insert("camps", {"current_bed_count": 3})
        with pytest.raises(StaleRecordError):
            store.update("camps", record["id"], {"current_bed_count": 1}, expected={"current_bed_count": 2})
        assert store.find("camps", record["id"])["current_bed_count"] == 3


class TestSharedDirectory:
    """Separate store instances over one data directory, as separate processes would have."""

    def run_concurrently(self, stores, action, count=20):
        """Run action(store, i) from a thread pool; return the raised exceptions."""
        barrier = threading.Barrier(count)

        def worker(i):
            barrier.wait()
            try:
                action(stores[i % len(stores)], i)
            except Exception as e:
                return e
            return None

        with ThreadPoolExecutor(max_workers=count) as pool:
            return [e for e in pool.map(worker, range(count)) if e is not None]

    def test_concurrent_inserts_are_not_lost(self, store):
        other = JsonFileRecordStore(store.data_dir, retry_delay=0)

        errors = self.run_concurrently([store, other], lambda s, i: s.insert("camps", {"name": f"Camp {i}"}))

        assert errors == []
        assert len(store.all("camps")) == 20
        assert len(other.all("camps")) == 20

    def test_one_selection_per_user_across_instances(self, store):
        other = JsonFileRecordStore(store.data_dir, retry_delay=0)

        errors = self.run_concurrently(
            [store, other], lambda s, i: s.insert("selections", {"user_id": "u1", "camp_id": f"c{i}"})
        )

        assert len(errors) == 19
        assert all(isinstance(e, DuplicateRecordError) for e in errors)
        assert len(store.all("selections")) == 1

    def test_conditional_update_sees_other_instance_write(self, store):
        other = JsonFileRecordStore(store.data_dir, retry_delay=0)
        record = store.insert("camps", {"current_bed_count": 3})
        other.update("camps", record["id"], {"current_bed_count": 2}, expected={"current_bed_count": 3})

        with pytest.raises(StaleRecordError):
            store.update("camps", record["id"], {"current_bed_count": 2}, expected={"current_bed_count": 3})

    def test_lock_file_is_not_a_collection(self, store):
        store.insert("camps", {"name": "A"})

        assert (store.data_dir / ".store.lock").exists()
        assert [p.name for p in store.data_dir.glob("*.json")] == ["camps.json"]


class TestTraceLogging:
    def test_load_and_save_paths_logged_at_trace(self, store, caplog):
        caplog.set_level(TRACE, logger="relief.store.json_store")

        store.insert("camps", {"name": "A"})

        trace_lines = [r.getMessage() for r in caplog.records if r.levelno == TRACE]
        assert f"Loading {store.data_dir / 'camps.json'}" in trace_lines
        assert f"Saving 1 records to {store.data_dir / 'camps.json'}" in trace_lines

    def test_silent_above_trace(self, store, caplog):
        caplog.set_level(logging.DEBUG, logger="relief.store.json_store")

        store.all("camps")

        assert not [r for r in caplog.records if r.levelno == TRACE]

class TestFailures:
    def test_corrupt_file(self, store):
        (store.data_dir / "camps.json").write_text("{not json")
        with pytest.raises(StoreUnavailableError):
            store.all("camps")

    def test_transient_os_error_is_retried(self, store):
        record = store.insert("camps", {"name": "A"})
        real_load = store._load
        calls = {"n": 0}

        def flaky_load(collection):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OSError("resource temporarily unavailable")
            return real_load(collection)

        with patch.object(store, "_load", side_effect=flaky_load):
            assert store.all("camps") == [record]
        assert calls["n"] == 2

    def test_persistent_os_error_surfaces_as_unavailable(self, store):
        with patch.object(store, "_load", side_effect=OSError("disk gone")) as mock_load:
            with pytest.raises(StoreUnavailableError):
                store.all("camps")
        assert mock_load.call_count == store.retry_attempts

    def test_failed_write_leaves_previous_contents(self, store):
        record = store.insert("camps", {"name": "A"})
        with patch("relief.store.json_store.os.replace", side_effect=OSError("read-only")):
            with pytest.raises(StoreUnavailableError):
                store.insert("camps", {"name": "B"})
        assert store.all("camps") == [record]
        assert list(store.data_dir.glob("*.tmp")) == []
