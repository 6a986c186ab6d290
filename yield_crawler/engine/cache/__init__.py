"""Cache SPI, backends and the TTL result cache."""

from __future__ import annotations

from pathlib import Path

from ...config import CacheBackendKind, ServiceSettings
from .base import BaseCacheBackend
from .memory_cache import MemoryCacheBackend
from .mongo_cache import MongoCacheBackend
from .result_cache import ResultCache
from .sqlite_cache import SQLiteCacheBackend


def build_backend(settings: ServiceSettings, data_dir: Path) -> BaseCacheBackend:
    """Instantiate the backend selected by ``CACHE_BACKEND``."""

    if settings.cache_backend is CacheBackendKind.MONGODB:
        return MongoCacheBackend(str(settings.cache_url))
    if settings.cache_backend is CacheBackendKind.SQLITE:
        path = Path(settings.cache_url) if settings.cache_url else data_dir / "snapshot_cache.db"
        return SQLiteCacheBackend(path)
    return MemoryCacheBackend()


__all__ = [
    "BaseCacheBackend",
    "MemoryCacheBackend",
    "MongoCacheBackend",
    "ResultCache",
    "SQLiteCacheBackend",
    "build_backend",
]
