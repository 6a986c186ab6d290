"""MongoDB-backed cache slot."""

from __future__ import annotations

from typing import Any

from pymongo import MongoClient

from ..results import AggregateSnapshot, CacheEntry
from .base import BaseCacheBackend

SLOT_ID = "latest"


class MongoCacheBackend(BaseCacheBackend):
    """Keep the snapshot in one document, replaced with an upsert."""

    durable = True

    def __init__(
        self,
        uri: str,
        database: str = "yield_crawler",
        collection: str = "snapshot_cache",
        timeout_ms: int = 3000,
        client: Any | None = None,
    ) -> None:
        self.client = client or MongoClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        self.collection = self.client[database][collection]

    def load(self) -> CacheEntry | None:
        document = self.collection.find_one({"_id": SLOT_ID})
        if not document:
            return None
        return CacheEntry(
            timestamp=float(document["timestamp"]),
            snapshot=AggregateSnapshot.from_dict(document["snapshot"]),
        )

    def store(self, entry: CacheEntry) -> None:
        self.collection.replace_one(
            {"_id": SLOT_ID},
            {"_id": SLOT_ID, "timestamp": entry.timestamp, "snapshot": entry.snapshot.to_dict()},
            upsert=True,
        )

    def close(self) -> None:
        self.client.close()


__all__ = ["MongoCacheBackend"]
