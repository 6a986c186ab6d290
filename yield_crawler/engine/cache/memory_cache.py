"""In-process cache slot."""

from __future__ import annotations

from ..results import CacheEntry
from .base import BaseCacheBackend


class MemoryCacheBackend(BaseCacheBackend):
    """Hold the entry in a single attribute; rebinding it is the atomic swap."""

    def __init__(self) -> None:
        self._entry: CacheEntry | None = None

    def load(self) -> CacheEntry | None:
        return self._entry

    def store(self, entry: CacheEntry) -> None:
        self._entry = entry


__all__ = ["MemoryCacheBackend"]
