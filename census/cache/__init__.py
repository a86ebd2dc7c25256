"""
Census Cache

Root-keyed, resumable snapshots of reconstructed leaf sets.
"""
from .backends import FileBackend, KeyValueBackend, MemoryBackend
from .store import (
    DEFAULT_MAX_ENTRIES,
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    CacheStats,
    CacheStatus,
    CacheStore,
    ResumePoint,
    TreeState,
    compute_checksum,
)

__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_TTL_SECONDS",
    "CacheEntry",
    "CacheStats",
    "CacheStatus",
    "CacheStore",
    "ResumePoint",
    "TreeState",
    "compute_checksum",
]
