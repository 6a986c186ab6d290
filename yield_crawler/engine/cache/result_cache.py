"""TTL cache in front of the collection pipeline."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import structlog

from ..results import AggregateSnapshot, CacheEntry
from .base import BaseCacheBackend
from .memory_cache import MemoryCacheBackend


class ResultCache:
    """Serve the latest snapshot while it is younger than ``ttl_seconds``.

    ``None`` is the miss signal throughout.
    """

    def __init__(
        self,
        backend: BaseCacheBackend | None = None,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.backend = backend or MemoryCacheBackend()
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.logger = logger or structlog.get_logger("yield_crawler.cache")

    async def get(self, now: float | None = None) -> AggregateSnapshot | None:
        entry = await self.peek()
        if entry is None:
            return None
        current = self.clock() if now is None else now
        if current - entry.timestamp < self.ttl_seconds:
            return entry.snapshot
        return None

    def get_forced(self) -> None:
        """Explicit refresh requested: always a miss."""

        return None

    async def set(self, snapshot: AggregateSnapshot, now: float | None = None) -> None:
        entry = CacheEntry(timestamp=self.clock() if now is None else now, snapshot=snapshot)
        if not self.backend.durable:
            self.backend.store(entry)
            return
        try:
            await asyncio.to_thread(self.backend.store, entry)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "cache_write_failed", backend=type(self.backend).__name__, error=str(exc)
            )

    async def peek(self) -> CacheEntry | None:
        """Latest entry regardless of age."""

        if not self.backend.durable:
            return self.backend.load()
        try:
            return await asyncio.to_thread(self.backend.load)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(
                "cache_read_failed", backend=type(self.backend).__name__, error=str(exc)
            )
            return None

    async def close(self) -> None:
        try:
            await asyncio.to_thread(self.backend.close)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("cache_close_failed", error=str(exc))


__all__ = ["ResultCache"]
