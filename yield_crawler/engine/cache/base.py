"""Cache backend Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..results import CacheEntry


class BaseCacheBackend(ABC):
    """Single-slot storage for the latest snapshot.

    ``durable`` backends talk to an external store; their IO runs in a worker
    thread and their failures degrade instead of propagating.
    """

    durable: bool = False

    @abstractmethod
    def load(self) -> CacheEntry | None:
        """Return the stored entry, or ``None`` when the slot is empty."""

    @abstractmethod
    def store(self, entry: CacheEntry) -> None:
        """Replace the slot with ``entry`` in one operation."""

    def close(self) -> None:
        """Release underlying resources."""
        return


__all__ = ["BaseCacheBackend"]
