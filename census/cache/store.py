"""
Census Cache - Tree Snapshot Store

Persists reconstructed leaf sets keyed by the census root they commit
to, so a later reconstruction of the same root can be served without
refetching, and an interrupted one can resume from its last page.

Per-root state machine:

    EMPTY --append_batch--> PARTIAL(next_offset) --mark_complete--> COMPLETE

Only COMPLETE entries are served by lookup(). Expiry never promotes a
PARTIAL entry; it only removes entries.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from census.cache.backends import KeyValueBackend, MemoryBackend
from census.schemas.canonical import dumps_canonical, ensure_utc, utc_now
from census.schemas.errors import CacheIntegrityError


logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class CacheStatus(str, Enum):
    EMPTY = "empty"
    PARTIAL = "partial"
    COMPLETE = "complete"


def compute_checksum(root_key: str, leaves: list[int]) -> str:
    """sha256 over the canonical JSON of the root key and ordered leaves."""
    payload = dumps_canonical({"root_key": root_key, "leaves": leaves})
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CacheEntry(BaseModel):
    """
    Stored snapshot for one root.

    Leaves are written as decimal strings so 254-bit values survive any
    JSON reader.
    """
    model_config = ConfigDict(extra="forbid")

    root_key: str = Field(..., min_length=1)
    source_id: Optional[str] = None
    status: CacheStatus = CacheStatus.EMPTY
    leaves: list[int] = Field(default_factory=list)
    next_offset: int = Field(default=0, ge=0)
    expected_size: Optional[int] = Field(default=None, ge=0)
    checksum: str = ""
    created_at: datetime
    updated_at: datetime

    @field_serializer("leaves", when_used="json")
    def _serialize_leaves(self, leaves: list[int]) -> list[str]:
        return [str(leaf) for leaf in leaves]

    def checksum_valid(self) -> bool:
        return self.checksum == compute_checksum(self.root_key, self.leaves)


@dataclass
class TreeState:
    """Leaves of a complete cached tree, in slot order."""
    root_key: str
    leaves: list[int] = field(default_factory=list)
    source_id: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.leaves)


@dataclass
class ResumePoint:
    """Where a (re)started reconstruction should continue."""
    leaves: list[int]
    next_offset: int
    status: CacheStatus


@dataclass
class CacheStats:
    total_trees: int = 0
    complete_trees: int = 0
    partial_trees: int = 0
    total_leaves: int = 0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_trees": self.total_trees,
            "complete_trees": self.complete_trees,
            "partial_trees": self.partial_trees,
            "total_leaves": self.total_leaves,
            "oldest_entry": self.oldest_entry.isoformat() if self.oldest_entry else None,
            "newest_entry": self.newest_entry.isoformat() if self.newest_entry else None,
        }


class CacheStore:
    """
    Root-keyed snapshot cache over a KeyValueBackend.

    All operations hold one re-entrant lock. Every mutation writes a
    whole new entry document, so a CacheWriteError from the backend
    leaves the previous entry in place.

    Example:
        >>> store = CacheStore()
        >>> store.start_or_resume("0x01")
        ResumePoint(leaves=[], next_offset=0, status=<CacheStatus.EMPTY: 'empty'>)
        >>> store.append_batch("0x01", [5, 6])
        >>> store.mark_complete("0x01")
        >>> store.lookup("0x01").leaves
        [5, 6]
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        integrity_check: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.backend = backend if backend is not None else MemoryBackend()
        self.max_entries = max_entries
        self.ttl = timedelta(seconds=ttl_seconds)
        self.integrity_check = integrity_check
        self._clock = clock
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def lookup(self, root_key: str, source_id: Optional[str] = None) -> Optional[TreeState]:
        """
        Return the complete tree for `root_key`, or None.

        Expired, corrupt or foreign-source entries are evicted and
        reported as a miss. Incomplete entries are a miss but are kept
        for resumption.
        """
        with self._lock:
            entry = self._load_valid(root_key, source_id)
            if entry is None or entry.status is not CacheStatus.COMPLETE:
                return None
            logger.debug(f"Cache hit for {root_key} ({len(entry.leaves)} leaves)")
            return TreeState(root_key=root_key, leaves=list(entry.leaves), source_id=entry.source_id)

    def get_entry(self, root_key: str) -> Optional[CacheEntry]:
        """Raw stored entry without validation; None if absent or unreadable."""
        with self._lock:
            try:
                return self._load(root_key)
            except CacheIntegrityError:
                return None

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def start_or_resume(self, root_key: str, source_id: Optional[str] = None) -> ResumePoint:
        """Open an entry for `root_key`, reusing valid prior progress."""
        with self._lock:
            entry = self._load_valid(root_key, source_id)
            if entry is None:
                now = self._clock()
                entry = CacheEntry(
                    root_key=root_key,
                    source_id=source_id,
                    created_at=now,
                    updated_at=now,
                    checksum=compute_checksum(root_key, []),
                )
                self._write(entry)
                logger.debug(f"Started cache entry for {root_key}")
            elif entry.status is not CacheStatus.EMPTY:
                logger.info(
                    f"Resuming {root_key} from offset {entry.next_offset} "
                    f"({len(entry.leaves)} leaves, {entry.status.value})"
                )
            return ResumePoint(
                leaves=list(entry.leaves),
                next_offset=entry.next_offset,
                status=entry.status,
            )

    def append_batch(
        self,
        root_key: str,
        leaves: list[int],
        next_offset: Optional[int] = None,
    ) -> None:
        """
        Append leaves to an open entry and record the feed offset.

        Args:
            root_key: Entry key
            leaves: Leaves in slot order, continuing the stored ones
            next_offset: Feed offset to resume from; defaults to the
                stored offset plus len(leaves)

        Raises:
            KeyError: No open entry for root_key
            ValueError: Entry is already complete
            CacheWriteError: Backend write failed
        """
        with self._lock:
            entry = self._require(root_key)
            if entry.status is CacheStatus.COMPLETE:
                raise ValueError(f"cache entry {root_key} is complete and read-only")
            new_leaves = entry.leaves + list(leaves)
            offset = next_offset if next_offset is not None else entry.next_offset + len(leaves)
            updated = entry.model_copy(update={
                "leaves": new_leaves,
                "next_offset": offset,
                "status": CacheStatus.PARTIAL,
                "checksum": compute_checksum(root_key, new_leaves),
                "updated_at": self._clock(),
            })
            self._write(updated)

    def mark_complete(self, root_key: str, expected_size: Optional[int] = None) -> None:
        """Seal an entry; lookups serve it from now on."""
        with self._lock:
            entry = self._require(root_key)
            if expected_size is not None and expected_size != len(entry.leaves):
                raise ValueError(
                    f"cache entry {root_key} has {len(entry.leaves)} leaves, expected {expected_size}"
                )
            updated = entry.model_copy(update={
                "status": CacheStatus.COMPLETE,
                "expected_size": len(entry.leaves),
                "checksum": compute_checksum(root_key, entry.leaves),
                "updated_at": self._clock(),
            })
            self._write(updated)
            logger.info(f"Cached complete tree {root_key} ({len(entry.leaves)} leaves)")

    def purge(self, root_key: str) -> bool:
        """Delete an entry. Returns True if one existed."""
        with self._lock:
            existed = self.backend.get(root_key) is not None
            self.backend.delete(root_key)
            if existed:
                logger.debug(f"Purged cache entry {root_key}")
            return existed

    def evict_oldest(self, keep: Optional[int] = None) -> list[str]:
        """
        Evict least-recently-updated entries until at most `keep`
        (default: max_entries) remain.
        """
        limit = self.max_entries if keep is None else keep
        with self._lock:
            entries = self._all_entries()
            if len(entries) <= limit:
                return []
            entries.sort(key=lambda e: ensure_utc(e.updated_at))
            victims = [e.root_key for e in entries[: len(entries) - limit]]
            for key in victims:
                self.backend.delete(key)
                logger.warning(f"Evicted cache entry {key} (capacity {limit})")
            return victims

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        with self._lock:
            keys = self.backend.keys()
            for key in keys:
                self.backend.delete(key)
            logger.info(f"Cleared {len(keys)} cache entries")
            return len(keys)

    def stats(self) -> CacheStats:
        with self._lock:
            entries = self._all_entries()
        stats = CacheStats(total_trees=len(entries))
        for entry in entries:
            stats.total_leaves += len(entry.leaves)
            if entry.status is CacheStatus.COMPLETE:
                stats.complete_trees += 1
            elif entry.status is CacheStatus.PARTIAL:
                stats.partial_trees += 1
        if entries:
            stamps = [ensure_utc(e.updated_at) for e in entries]
            stats.oldest_entry = min(stamps)
            stats.newest_entry = max(stamps)
        return stats

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, root_key: str) -> Optional[CacheEntry]:
        raw = self.backend.get(root_key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            raise CacheIntegrityError(f"Unreadable cache entry: {e}", root_key=root_key) from e

    def _load_valid(self, root_key: str, source_id: Optional[str]) -> Optional[CacheEntry]:
        try:
            entry = self._load(root_key)
            if entry is None:
                return None
            if entry.root_key != root_key:
                raise CacheIntegrityError("Stored entry belongs to another root", root_key=root_key)
            if self.integrity_check and not entry.checksum_valid():
                raise CacheIntegrityError("Checksum mismatch", root_key=root_key)
        except CacheIntegrityError as e:
            logger.warning(f"Evicting corrupt cache entry {root_key}: {e.message}")
            self.backend.delete(root_key)
            return None

        if self._is_expired(entry):
            logger.warning(f"Evicting expired cache entry {root_key}")
            self.backend.delete(root_key)
            return None
        if source_id is not None and entry.source_id is not None and entry.source_id != source_id:
            logger.warning(
                f"Evicting cache entry {root_key}: source {entry.source_id!r} != {source_id!r}"
            )
            self.backend.delete(root_key)
            return None
        return entry

    def _require(self, root_key: str) -> CacheEntry:
        entry = self._load(root_key)
        if entry is None:
            raise KeyError(f"no open cache entry for {root_key}")
        return entry

    def _is_expired(self, entry: CacheEntry) -> bool:
        return ensure_utc(self._clock()) - ensure_utc(entry.updated_at) > self.ttl

    def _write(self, entry: CacheEntry) -> None:
        self.backend.put(entry.root_key, entry.model_dump_json().encode("utf-8"))
        self.evict_oldest()

    def _all_entries(self) -> list[CacheEntry]:
        entries = []
        for key in self.backend.keys():
            try:
                entry = self._load(key)
            except CacheIntegrityError:
                logger.warning(f"Skipping unreadable cache entry {key}")
                continue
            if entry is not None:
                entries.append(entry)
        return entries


__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_TTL_SECONDS",
    "CacheStatus",
    "CacheEntry",
    "TreeState",
    "ResumePoint",
    "CacheStats",
    "CacheStore",
    "compute_checksum",
]
