"""
Unit tests for snapshot persistence.
"""

import os
import shutil
import sqlite3
import tempfile
from datetime import datetime

from ai_gateway.storage.models import (
    CacheEntry,
    ProcessingMode,
    Snapshot,
    SubItem,
    Tag,
    UsageAlert,
    UsageEvent,
    UsageKind,
    WorkUnit,
)
from ai_gateway.storage.repository import (
    InMemorySnapshotStore,
    SQLiteSnapshotStore,
    get_store,
    initialize_schema,
)


def _snapshot():
    now = datetime(2024, 5, 1, 12, 0, 0)
    return Snapshot(
        work_units=[WorkUnit(
            id="u1",
            title="Ship gateway",
            priority="P2",
            description="route all calls",
            tags=["t1"],
            checklist=[SubItem(id="c1", text="tests", done=True)],
            definition_of_done=[SubItem(id="d1", text="docs")],
            fan_out=True,
            processing_mode=ProcessingMode.BATCH,
            batch_job_id="batch-1",
            updated_at=now,
        )],
        tags=[Tag(id="t1", label="later")],
        routine_cache=[CacheEntry(key="daily", value="answer", created_at=now, ttl_seconds=60)],
        usage_events=[UsageEvent(
            id="e1", kind=UsageKind.BATCH, tokens=1024, created_at=now,
            model="gpt-4o-mini", unit_ids=["u1"],
        )],
        usage_alerts=[UsageAlert(id="a1", level="warn", message="high", created_at=now)],
    )


class TestSnapshotModels:
    """Test snapshot serialization."""

    def test_dict_round_trip(self):
        snapshot = _snapshot()
        assert Snapshot.from_dict(snapshot.to_dict()) == snapshot

    def test_camel_case_keys(self):
        data = _snapshot().to_dict()
        assert set(data) == {"workUnits", "tags", "routineCache", "usageEvents", "usageAlerts"}
        unit = data["workUnits"][0]
        assert unit["fanOut"] is True
        assert unit["processingMode"] == "batch"
        assert unit["definitionOfDone"][0]["text"] == "docs"

    def test_sparse_unit_defaults(self):
        unit = WorkUnit.from_dict({"id": "u9", "description": None})
        assert unit.priority == "medium"
        assert unit.description == ""
        assert unit.processing_mode == ProcessingMode.INTERACTIVE
        assert unit.subitem_count == 0

    def test_empty_document(self):
        assert Snapshot.from_dict(None) == Snapshot()

    def test_cache_entry_expiry(self):
        created = datetime(2024, 5, 1, 12, 0, 0)
        entry = CacheEntry(key="k", value="v", created_at=created, ttl_seconds=10)
        assert not entry.is_expired(datetime(2024, 5, 1, 12, 0, 10))
        assert entry.is_expired(datetime(2024, 5, 1, 12, 0, 11))
        forever = CacheEntry(key="k", value="v", created_at=created)
        assert not forever.is_expired(datetime(2030, 1, 1))

    def test_find_unit(self):
        snapshot = _snapshot()
        assert snapshot.find_unit("u1").title == "Ship gateway"
        assert snapshot.find_unit("missing") is None


class TestInMemorySnapshotStore:
    """Test the in-memory store."""

    def test_loads_are_copies(self):
        store = InMemorySnapshotStore(_snapshot())
        loaded = store.load()
        loaded.work_units.clear()
        assert len(store.load().work_units) == 1

    def test_save_replaces(self):
        store = InMemorySnapshotStore()
        store.save(_snapshot())
        assert store.load() == _snapshot()
        assert store.save_count == 1

    def test_last_writer_wins(self):
        store = InMemorySnapshotStore(_snapshot())
        first = store.load()
        second = store.load()
        first.tags.append(Tag(id="t2", label="next"))
        second.work_units.clear()
        store.save(first)
        store.save(second)
        final = store.load()
        assert final.work_units == []
        assert [tag.id for tag in final.tags] == ["t1"]


class TestSQLiteSnapshotStore:
    """Test the SQLite-backed store."""

    def setup_method(self):
        """Set up test database."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "nested", "gateway.db")

    def teardown_method(self):
        """Clean up test database."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_schema_created(self):
        initialize_schema(self.db_path)
        conn = sqlite3.connect(self.db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        finally:
            conn.close()
        assert "gateway_snapshot" in tables

    def test_empty_load(self):
        assert get_store(self.db_path).load() == Snapshot()

    def test_save_and_load(self):
        store = get_store(self.db_path)
        store.save(_snapshot())
        assert SQLiteSnapshotStore(self.db_path).load() == _snapshot()

    def test_save_overwrites_single_row(self):
        store = get_store(self.db_path)
        store.save(_snapshot())
        store.save(Snapshot(tags=[Tag(id="t9", label="now")]))

        assert store.load() == Snapshot(tags=[Tag(id="t9", label="now")])
        conn = sqlite3.connect(self.db_path)
        try:
            count = conn.execute("SELECT COUNT(*) FROM gateway_snapshot").fetchone()[0]
        finally:
            conn.close()
        assert count == 1

    def test_initialize_is_idempotent(self):
        store = get_store(self.db_path)
        store.save(_snapshot())
        initialize_schema(self.db_path)
        assert store.load() == _snapshot()
