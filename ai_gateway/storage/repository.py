"""
Snapshot persistence.

The gateway shares one document with the task board: work units, tags,
routine cache, usage events and alerts. Every mutation loads the whole
snapshot, changes it and saves it back.

Known limitation: there is no optimistic concurrency check. Two writers that
load the same snapshot race, and the later save silently wins.
"""

import copy
import json
from datetime import datetime
from typing import Optional, Protocol

from .db import DEFAULT_DB_PATH, get_connection
from .models import Snapshot


class SnapshotStore(Protocol):
    """Load/save port for the shared persisted document."""

    def load(self) -> Snapshot:
        ...

    def save(self, snapshot: Snapshot) -> None:
        ...


class InMemorySnapshotStore:
    """Snapshot store kept in memory. Loads hand out deep copies."""

    def __init__(self, snapshot: Optional[Snapshot] = None):
        self._snapshot = snapshot or Snapshot()
        self.save_count = 0

    def load(self) -> Snapshot:
        return copy.deepcopy(self._snapshot)

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1


class SQLiteSnapshotStore:
    """Snapshot store keeping the JSON document in a single SQLite row."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def load(self) -> Snapshot:
        """Load the current snapshot, or an empty one if nothing was saved yet."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("SELECT payload FROM gateway_snapshot WHERE id = 1")
            row = cursor.fetchone()
            if row is None:
                return Snapshot()
            return Snapshot.from_dict(json.loads(row[0]))
        finally:
            conn.close()

    def save(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot atomically."""
        payload = json.dumps(snapshot.to_dict())
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO gateway_snapshot (id, payload, updated_at)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
            """, (payload, datetime.now().isoformat()))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the gateway_snapshot table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS gateway_snapshot (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


def get_store(db_path: str = DEFAULT_DB_PATH) -> SQLiteSnapshotStore:
    """Return a SQLite-backed store with its schema in place."""
    initialize_schema(db_path)
    return SQLiteSnapshotStore(db_path)
