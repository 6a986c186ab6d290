"""SQLite-backed cache slot."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from threading import Lock

from ..results import AggregateSnapshot, CacheEntry
from .base import BaseCacheBackend


class SQLiteCacheBackend(BaseCacheBackend):
    """Persist the snapshot as a JSON blob in a one-row table."""

    durable = True

    def __init__(self, path: Path, table: str = "snapshot_cache") -> None:
        self.path = path
        self.table = table
        self._lock = Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                timestamp REAL NOT NULL,
                payload TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def load(self) -> CacheEntry | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT timestamp, payload FROM {self.table} WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        return CacheEntry(
            timestamp=float(row[0]),
            snapshot=AggregateSnapshot.from_dict(json.loads(row[1])),
        )

    def store(self, entry: CacheEntry) -> None:
        payload = json.dumps(entry.snapshot.to_dict(), ensure_ascii=False)
        with self._lock:
            self.conn.execute(
                f"INSERT OR REPLACE INTO {self.table}(id, timestamp, payload) VALUES (1, ?, ?)",
                (entry.timestamp, payload),
            )
            self.conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()


__all__ = ["SQLiteCacheBackend"]
