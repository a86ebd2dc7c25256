"""
Census Reconstruction

Rebuilds the Lean-IMT census tree from external feeds, verifies it
against the authoritative on-chain root, and serves roots, sizes and
proofs from the rebuilt tree.

Two reconstruction paths:
- State path (reconstruct): paginate current accounts in slot order,
  place each leaf at its slot, fill gaps and the tail with zero
  tombstones. Progress is checkpointed in the CacheStore after every
  page so an interrupted run resumes where it stopped.
- Replay path (reconstruct_from_events): replay every weight-change
  event in (block_number, log_index) order through the
  InsertionOrderTracker.

Failure policy:
- Retryable feed and hash errors are retried with exponential backoff;
  exhausted retries propagate and never yield an empty tree.
- A feed failure keeps the partial cache entry if any leaves were
  fetched and purges it otherwise. Feed data errors purge it. Cache
  write failures propagate and leave the stored entry untouched.
- A state-path root that does not match the authoritative root purges
  the entry it wrote and raises RootMismatchError. The replay path
  never purges entries it did not write.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from census.cache.backends import FileBackend, MemoryBackend
from census.cache.store import CacheStatus, CacheStore
from census.config.runtime import CacheConfig, RuntimeConfig, get_default_config
from census.crypto.hashing import HashFunction, load_hasher, to_hex
from census.feeds.base import AccountFeed, EventFeed, RootSource
from census.http.client import HttpClient
from census.merkle.codec import ZERO_LEAF, normalize_account_id, pack_leaf, unpack_leaf
from census.merkle.lean_imt import LeanIMT
from census.merkle.proofs import LeanIMTProof, verify_proof
from census.replay.replayer import replay_events
from census.retry import RetryPolicy, call_with_retries
from census.schemas.errors import (
    ConfigurationError,
    EncodingError,
    FeedDataError,
    FeedUnavailable,
    OrderingViolation,
    RootMismatchError,
)
from census.schemas.models import AccountRecord, BlockRef, WeightChangeEvent


logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Result
# =============================================================================

@dataclass
class CensusTree:
    """Summary of a completed reconstruction."""
    root: int
    size: int
    account_count: int
    total_weight: int
    path: str  # "cache", "accounts" or "events"
    verified_against: Optional[int] = None
    pages_fetched: int = 0

    @property
    def from_cache(self) -> bool:
        return self.path == "cache"

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": to_hex(self.root),
            "root_decimal": str(self.root),
            "size": self.size,
            "account_count": self.account_count,
            "total_weight": str(self.total_weight),
            "path": self.path,
            "from_cache": self.from_cache,
            "verified": self.verified_against is not None,
            "pages_fetched": self.pages_fetched,
        }


@dataclass
class _Snapshot:
    """Tree plus account index, swapped in atomically."""
    tree: LeanIMT
    slots: dict[str, int] = field(default_factory=dict)
    weights: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, tree: LeanIMT) -> "_Snapshot":
        snapshot = cls(tree=tree)
        for slot, leaf in enumerate(tree.leaves):
            if leaf == ZERO_LEAF:
                continue
            account_id, weight = unpack_leaf(leaf)
            snapshot.slots[account_id] = slot
            snapshot.weights[account_id] = weight
        return snapshot

    def record(self, account_id: str) -> Optional[AccountRecord]:
        slot = self.slots.get(account_id)
        if slot is None:
            return None
        return AccountRecord(account_id=account_id, weight=self.weights[account_id], slot_index=slot)


@dataclass
class _LeafBuffer:
    """Dense slot-ordered leaves assembled from account pages."""
    leaves: list[int] = field(default_factory=list)
    seen: dict[str, int] = field(default_factory=dict)

    @classmethod
    def resume(cls, leaves: list[int]) -> "_LeafBuffer":
        buffer = cls(leaves=list(leaves))
        for slot, leaf in enumerate(leaves):
            if leaf != ZERO_LEAF:
                buffer.seen[unpack_leaf(leaf)[0]] = slot
        return buffer

    def add_page(self, records: list[AccountRecord]) -> list[int]:
        """Place a page of records; returns the leaves appended."""
        start = len(self.leaves)
        for record in sorted(records, key=lambda r: r.slot_index):
            self._place(record)
        return self.leaves[start:]

    def _place(self, record: AccountRecord) -> None:
        if record.weight == 0:
            return
        if record.slot_index < 0:
            raise FeedDataError(
                f"account {record.account_id} has weight but no tree index",
                details={"account_id": record.account_id},
            )
        leaf = pack_leaf(record.account_id, record.weight)
        slot = record.slot_index

        known = self.seen.get(record.account_id)
        if known is not None:
            if known == slot and self.leaves[slot] == leaf:
                return
            raise OrderingViolation(
                f"account listed twice (slots {known} and {slot})",
                account_id=record.account_id,
            )
        if slot < len(self.leaves):
            raise OrderingViolation(
                f"slot {slot} already holds another account",
                account_id=record.account_id,
                details={"slot": slot},
            )
        self.leaves.extend([ZERO_LEAF] * (slot - len(self.leaves)))
        self.leaves.append(leaf)
        self.seen[record.account_id] = slot


# =============================================================================
# Reconstructor
# =============================================================================

class CensusReconstructor:
    """
    Reconstructs and serves the census tree.

    Usage:
        reconstructor = CensusReconstructor.from_config(config)
        tree = reconstructor.reconstruct()
        proof = reconstructor.proof_for("0x...")

    Thread safety: reconstructions on one instance run one at a time;
    reads (root, proof_for, ...) see either the old or the new tree,
    never a partial one.
    """

    def __init__(
        self,
        account_feed: Optional[AccountFeed] = None,
        root_source: Optional[RootSource] = None,
        cache: Optional[CacheStore] = None,
        event_feed: Optional[EventFeed] = None,
        hasher: Optional[HashFunction] = None,
        config: Optional[RuntimeConfig] = None,
        *,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.config = config or get_default_config()
        self.account_feed = account_feed
        self.root_source = root_source
        self.event_feed = event_feed
        self.cache = cache
        self.hasher = hasher or load_hasher(self.config.hash.primitive, self.config.hash.provider)
        self.retry_policy: RetryPolicy = self.config.retry.to_policy()
        self.page_size = self.config.reconstruction.page_size
        self.max_workers = self.config.reconstruction.max_workers
        self.verify_root = self.config.reconstruction.verify_root
        self.source_id = self.config.reconstruction.source_id or getattr(account_feed, "source_id", None)
        self._sleep = sleep

        self._snapshot: Optional[_Snapshot] = None
        self._lock = threading.RLock()
        self._build_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: Optional[RuntimeConfig] = None,
        *,
        account_feed: Optional[AccountFeed] = None,
        root_source: Optional[RootSource] = None,
        event_feed: Optional[EventFeed] = None,
        cache: Optional[CacheStore] = None,
        hasher: Optional[HashFunction] = None,
    ) -> "CensusReconstructor":
        """
        Wire a reconstructor from configuration.

        Feeds not passed explicitly default to a SubgraphClient on
        `config.subgraph.url`, when one is configured.
        """
        config = config or get_default_config()
        if config.subgraph.url and None in (account_feed, root_source, event_feed):
            from census.feeds.subgraph import SubgraphClient

            http = HttpClient(
                timeout=config.http.timeout,
                default_headers={
                    "Content-Type": "application/json",
                    "User-Agent": config.http.user_agent,
                    **config.subgraph.headers(),
                },
                proxy=config.http.proxy,
            )
            client = SubgraphClient(config.subgraph.url, http=http)
            account_feed = account_feed or client
            root_source = root_source or client
            event_feed = event_feed or client

        return cls(
            account_feed=account_feed,
            root_source=root_source,
            cache=cache if cache is not None else build_cache_store(config.cache),
            event_feed=event_feed,
            hasher=hasher,
            config=config,
        )

    # -------------------------------------------------------------------------
    # Reconstruction
    # -------------------------------------------------------------------------

    def reconstruct(self, expected_root: Optional[int] = None) -> CensusTree:
        """
        Rebuild the tree from the account feed (or the cache).

        Args:
            expected_root: Root to reconstruct; defaults to the root
                source's current root when a root source is configured

        Raises:
            RootMismatchError: Rebuilt root differs from the expected root
            FeedUnavailable: Feed still failing after retries
            FeedDataError / OrderingViolation: Inconsistent feed data
            CacheWriteError: Progress could not be persisted; the stored
                entry is left as it was
        """
        return self._reconstruct(expected_root)[0]

    def reconstruct_from_events(self, expected_root: Optional[int] = None) -> CensusTree:
        """
        Rebuild the tree by replaying every weight-change event.

        A complete cached tree for the target root is served without
        touching the event feed. Otherwise events from all pages are
        de-duplicated by event id and sorted by (block_number, log_index)
        before replay.
        """
        feed = self.event_feed
        if feed is None:
            raise ConfigurationError("no event feed configured")

        with self._build_lock:
            target = expected_root if expected_root is not None else self._authoritative_root()
            hit = self._from_cache(target)
            if hit is not None:
                return hit[0]

            events, pages = self._fetch_events(feed)
            result = self._call(lambda: replay_events(events, self.hasher), "event replay")
            tree = result.tree
            # Nothing is written under the target key before this check.
            self._check_against(tree, target, None)
            if self.cache is not None:
                self._store_complete(self.cache, to_hex(tree.root), tree.leaves)
            return self._install(tree, "events", target, pages)[0]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def root(self) -> int:
        return self._current().tree.root

    def size(self) -> int:
        return self._current().tree.size

    def size_of(self, root: int) -> Optional[int]:
        """Slot count of the tree committing to `root`, if known."""
        with self._lock:
            snapshot = self._snapshot
        if snapshot is not None and snapshot.tree.root == root:
            return snapshot.tree.size
        if self.cache is not None:
            cached = self.cache.lookup(to_hex(root), self.source_id)
            if cached is not None:
                return cached.size
        return None

    def proof_for(self, account_id: str) -> Optional[LeanIMTProof]:
        """Inclusion proof for a present account, or None."""
        found = self.account_proof(account_id)
        return found[1] if found is not None else None

    def account(self, account_id: str) -> Optional[AccountRecord]:
        """Address, weight and slot of a present account, or None."""
        snapshot = self._current()
        return snapshot.record(normalize_account_id(account_id))

    def account_proof(self, account_id: str) -> Optional[tuple[AccountRecord, LeanIMTProof]]:
        """Account record and its inclusion proof, both taken from one tree."""
        snapshot = self._current()
        record = snapshot.record(normalize_account_id(account_id))
        if record is None:
            return None
        return record, snapshot.tree.generate_proof(record.slot_index)

    def all_leaves(self) -> list[int]:
        return self._current().tree.leaves

    def verify(self, root: int, leaf: int, siblings: list[int]) -> bool:
        return verify_proof(root, leaf, siblings, self.hasher)

    def validate_root(self, root: int) -> Optional[BlockRef]:
        """Block at which `root` was published on-chain, or None."""
        if self.root_source is None:
            raise ConfigurationError("no root source configured")
        source = self.root_source
        return self._call(lambda: source.root_was_valid_at(root), "root lookup")

    def check_root(self, expected_root: int) -> None:
        """Raise RootMismatchError unless the current tree commits to `expected_root`."""
        actual = self.root()
        if actual != expected_root:
            raise RootMismatchError(expected=expected_root, actual=actual)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            snapshot = self._snapshot
        tree_stats: Optional[dict[str, Any]] = None
        if snapshot is not None:
            tree_stats = {
                "root": to_hex(snapshot.tree.root),
                "size": snapshot.tree.size,
                "depth": snapshot.tree.depth,
                "account_count": len(snapshot.slots),
            }
        return {
            "tree": tree_stats,
            "cache": self.cache.stats().to_dict() if self.cache is not None else None,
        }

    def clear(self) -> int:
        """Drop the in-memory tree and every cache entry."""
        with self._lock:
            self._snapshot = None
        return self.cache.clear() if self.cache is not None else 0

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _call(self, fn: Callable[[], T], description: str) -> T:
        return call_with_retries(fn, self.retry_policy, description=description, sleep=self._sleep)

    def _authoritative_root(self) -> Optional[int]:
        if self.root_source is None:
            return None
        source = self.root_source
        root = self._call(source.current_root, "current root lookup")
        logger.info(f"Authoritative census root {to_hex(root)}")
        return root

    def _current(self) -> _Snapshot:
        with self._lock:
            snapshot = self._snapshot
        if snapshot is None:
            snapshot = self._reconstruct(None)[1]
        return snapshot

    def _reconstruct(self, expected_root: Optional[int]) -> tuple[CensusTree, _Snapshot]:
        feed = self.account_feed
        if feed is None:
            raise ConfigurationError("no account feed configured")

        with self._build_lock:
            target = expected_root if expected_root is not None else self._authoritative_root()
            hit = self._from_cache(target)
            if hit is not None:
                return hit

            key = to_hex(target) if target is not None else None
            leaves, pages = self._fetch_leaves(feed, key)
            tree = self._build_tree(leaves)
            self._check_against(tree, target, key)

            cache = self.cache
            if cache is not None:
                actual_key = to_hex(tree.root)
                if key == actual_key:
                    cache.mark_complete(actual_key)
                else:
                    if key is not None:
                        cache.purge(key)
                    self._store_complete(cache, actual_key, leaves)
            return self._install(tree, "accounts", target, pages)

    def _from_cache(self, target: Optional[int]) -> Optional[tuple[CensusTree, _Snapshot]]:
        """Install the complete cached tree for `target`, if it still hashes to it."""
        if target is None or self.cache is None:
            return None
        key = to_hex(target)
        cached = self.cache.lookup(key, self.source_id)
        if cached is None:
            return None
        tree = self._build_tree(cached.leaves)
        if tree.root != target:
            logger.warning(f"Cached leaves for {key} hash to a different root; refetching")
            self.cache.purge(key)
            return None
        logger.info(f"Serving census {key} from cache ({tree.size} slots)")
        return self._install(tree, "cache", target)

    def _build_tree(self, leaves: list[int]) -> LeanIMT:
        return self._call(lambda: LeanIMT(self.hasher, leaves), "tree build")

    def _check_against(self, tree: LeanIMT, target: Optional[int], key: Optional[str]) -> None:
        if target is None or not self.verify_root or tree.root == target:
            return
        if key is not None and self.cache is not None:
            self.cache.purge(key)
        logger.error(f"Reconstructed root {to_hex(tree.root)} does not match {to_hex(target)}")
        raise RootMismatchError(expected=target, actual=tree.root)

    def _install(
        self,
        tree: LeanIMT,
        path: str,
        target: Optional[int],
        pages: int = 0,
    ) -> tuple[CensusTree, _Snapshot]:
        snapshot = _Snapshot.from_tree(tree)
        with self._lock:
            self._snapshot = snapshot
        result = CensusTree(
            root=tree.root,
            size=tree.size,
            account_count=len(snapshot.slots),
            total_weight=sum(snapshot.weights.values()),
            path=path,
            verified_against=target if self.verify_root else None,
            pages_fetched=pages,
        )
        logger.info(
            f"Census {to_hex(result.root)} ready via {path}: "
            f"{result.size} slots, {result.account_count} accounts"
        )
        return result, snapshot

    def _store_complete(self, cache: CacheStore, key: str, leaves: list[int]) -> None:
        resume = cache.start_or_resume(key, self.source_id)
        if resume.status is CacheStatus.COMPLETE and resume.leaves == leaves:
            return
        if resume.status is CacheStatus.COMPLETE or resume.leaves != leaves[: len(resume.leaves)]:
            cache.purge(key)
            cache.start_or_resume(key, self.source_id)
            resume_count = 0
        else:
            resume_count = len(resume.leaves)
        cache.append_batch(key, leaves[resume_count:], next_offset=len(leaves))
        cache.mark_complete(key)

    def _fetch_page(self, feed: AccountFeed, first: int, skip: int) -> list[AccountRecord]:
        return self._call(lambda: feed.fetch_accounts(first, skip), f"account page skip={skip}")

    def _fetch_leaves(self, feed: AccountFeed, key: Optional[str]) -> tuple[list[int], int]:
        """
        Fetch every account page and assemble slot-ordered leaves.

        Progress is checkpointed under `key` when one is given. Feed
        outages keep that progress, data errors purge it, and cache write
        failures propagate without touching the stored entry.

        Returns:
            (leaves, pages fetched in this run)
        """
        cache = self.cache if key is not None else None

        if cache is not None and key is not None:
            resume = cache.start_or_resume(key, self.source_id)
            if resume.status is CacheStatus.COMPLETE:
                cache.purge(key)
                resume = cache.start_or_resume(key, self.source_id)
            buffer = _LeafBuffer.resume(resume.leaves)
            offset = resume.next_offset
        else:
            buffer = _LeafBuffer()
            offset = 0

        pages = 0
        try:
            tree_size = self._call(feed.tree_size, "tree size lookup")
            exhausted = False
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                while not exhausted:
                    window: list[tuple[int, Future]] = [
                        (skip, pool.submit(self._fetch_page, feed, self.page_size, skip))
                        for skip in range(
                            offset,
                            offset + self.page_size * self.max_workers,
                            self.page_size,
                        )
                    ]
                    for skip, future in window:
                        if exhausted:
                            future.cancel()
                            continue
                        records = future.result()
                        pages += 1
                        appended = buffer.add_page(records)
                        offset = skip + len(records)
                        if cache is not None and key is not None:
                            cache.append_batch(key, appended, next_offset=offset)
                        logger.debug(
                            f"Page skip={skip}: {len(records)} accounts, "
                            f"{len(buffer.leaves)} slots so far"
                        )
                        if len(records) < self.page_size:
                            exhausted = True

            tail = self._tail_tombstones(len(buffer.leaves), tree_size)
            buffer.leaves.extend(tail)
            if cache is not None and key is not None and tail:
                cache.append_batch(key, tail, next_offset=offset)
        except FeedUnavailable:
            if cache is not None and key is not None:
                if buffer.leaves:
                    logger.warning(
                        f"Feed failed; keeping {len(buffer.leaves)} cached leaves for {key}"
                    )
                else:
                    cache.purge(key)
            raise
        except (FeedDataError, OrderingViolation, EncodingError):
            if cache is not None and key is not None:
                cache.purge(key)
            raise

        if not buffer.leaves:
            logger.info("Account feed reports an empty census")
        logger.info(f"Fetched {pages} pages: {len(buffer.leaves)} slots, {len(buffer.seen)} accounts")
        return buffer.leaves, pages

    @staticmethod
    def _tail_tombstones(observed: int, tree_size: Optional[int]) -> list[int]:
        if tree_size is None:
            return []
        if tree_size < observed:
            raise FeedDataError(
                f"feed reports {tree_size} slots but listed accounts reach slot {observed - 1}",
                details={"tree_size": tree_size, "observed": observed},
            )
        return [ZERO_LEAF] * (tree_size - observed)

    def _fetch_events(self, feed: EventFeed) -> tuple[list[WeightChangeEvent], int]:
        events: dict[Any, WeightChangeEvent] = {}
        skip = 0
        pages = 0
        while True:
            page = self._call(
                lambda skip=skip: feed.fetch_events(self.page_size, skip),
                f"event page skip={skip}",
            )
            pages += 1
            for event in page:
                dedupe_key = event.event_id or (event.ordering_key, event.account_id)
                events[dedupe_key] = event
            if len(page) < self.page_size:
                break
            skip += len(page)
        ordered = sorted(events.values(), key=lambda e: e.ordering_key)
        logger.info(f"Fetched {len(ordered)} weight change events in {pages} pages")
        return ordered, pages


def build_cache_store(config: CacheConfig) -> CacheStore:
    """CacheStore with the backend named in the cache config."""
    if config.backend == "file":
        backend = FileBackend(config.directory)
    else:
        backend = MemoryBackend()
    return CacheStore(
        backend,
        max_entries=config.max_entries,
        ttl_seconds=config.ttl_seconds,
        integrity_check=config.integrity_check,
    )


__all__ = [
    "CensusTree",
    "CensusReconstructor",
    "build_cache_store",
]
