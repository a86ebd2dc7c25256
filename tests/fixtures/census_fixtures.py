"""
Census test fixtures.

Provides:
- Address and event builders
- In-memory implementations of AccountFeed, EventFeed and RootSource
- A feed that fails on chosen pages, for resume and retry tests
- A RuntimeConfig using the built-in sha256-bn254 hash and no backoff

The account feed is derived from an event history so the state path and
the replay path describe the same census.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from census.config.runtime import (
    HashConfig,
    ReconstructionConfig,
    RetryConfig,
    RuntimeConfig,
)
from census.crypto.hashing import sha256_field_hash
from census.replay.replayer import ReplayResult, replay_events
from census.schemas.errors import FeedUnavailable
from census.schemas.models import (
    AccountRecord,
    BlockRef,
    WeightChangeEvent,
)


HASHER = sha256_field_hash


def addr(n: int) -> str:
    """Deterministic account address for small integers."""
    return f"0x{n:040x}"


ALICE = addr(0xA11CE)
BOB = addr(0xB0B)
CAROL = addr(0xCA201)
DAVE = addr(0xDA7E)


def make_event(
    account: str,
    previous: int,
    new: int,
    block: int,
    log_index: int = 0,
    event_id: Optional[str] = None,
) -> WeightChangeEvent:
    return WeightChangeEvent(
        account_id=account,
        previous_weight=previous,
        new_weight=new,
        block_number=block,
        log_index=log_index,
        block_timestamp=1_700_000_000 + block * 12,
        event_id=event_id or f"evt-{block}-{log_index}",
    )


def make_history() -> list[WeightChangeEvent]:
    """
    Reference history.

    Final layout: [alice=15, tombstone, carol=5, dave=7, bob=3]. Bob is
    removed from slot 1 and re-added at slot 4.
    """
    return [
        make_event(ALICE, 0, 10, block=1),
        make_event(BOB, 0, 20, block=2),
        make_event(CAROL, 0, 5, block=3),
        make_event(ALICE, 10, 15, block=4),
        make_event(BOB, 20, 0, block=5),
        make_event(DAVE, 0, 7, block=6),
        make_event(BOB, 0, 3, block=7),
    ]


def replay(events: Iterable[WeightChangeEvent]) -> ReplayResult:
    return replay_events(list(events), HASHER)


def accounts_from_replay(result: ReplayResult) -> list[AccountRecord]:
    """Current account state (only present accounts) after a replay."""
    return [
        AccountRecord(
            account_id=slot.account_id,
            weight=slot.weight,
            slot_index=slot.slot_index,
            first_inserted_block=slot.first_inserted_block,
        )
        for slot in result.state.accounts.values()
        if slot.is_present
    ]


# =============================================================================
# Fake feeds
# =============================================================================

class InMemoryAccountFeed:
    """AccountFeed over a fixed list of accounts, served in slot order."""

    source_id = "memory:accounts"

    def __init__(self, accounts: list[AccountRecord], tree_size: Optional[int] = None) -> None:
        self.accounts = sorted(
            (a for a in accounts if a.weight > 0),
            key=lambda a: a.slot_index,
        )
        self._tree_size = tree_size
        self.calls: list[tuple[int, int]] = []
        self._lock = threading.Lock()

    def fetch_accounts(self, first: int, skip: int) -> list[AccountRecord]:
        with self._lock:
            self.calls.append((first, skip))
        return list(self.accounts[skip:skip + first])

    def tree_size(self) -> Optional[int]:
        return self._tree_size


class FlakyAccountFeed(InMemoryAccountFeed):
    """
    Fails with FeedUnavailable on the pages in `fail_skips` while
    `healthy` is False, or for the first `transient_failures` calls.
    """

    def __init__(
        self,
        accounts: list[AccountRecord],
        tree_size: Optional[int] = None,
        *,
        fail_skips: Iterable[int] = (),
        transient_failures: int = 0,
    ) -> None:
        super().__init__(accounts, tree_size)
        self.fail_skips = set(fail_skips)
        self.healthy = False
        self.transient_failures = transient_failures

    def fetch_accounts(self, first: int, skip: int) -> list[AccountRecord]:
        with self._lock:
            if self.transient_failures > 0:
                self.transient_failures -= 1
                self.calls.append((first, skip))
                raise FeedUnavailable("temporary outage", source=self.source_id)
        if not self.healthy and skip in self.fail_skips:
            with self._lock:
                self.calls.append((first, skip))
            raise FeedUnavailable(f"page skip={skip} unavailable", source=self.source_id)
        return super().fetch_accounts(first, skip)


class InMemoryEventFeed:
    """EventFeed over a fixed list of events, served as given."""

    def __init__(self, events: list[WeightChangeEvent]) -> None:
        self.events = list(events)
        self.calls: list[tuple[int, int]] = []

    def fetch_events(self, first: int, skip: int) -> list[WeightChangeEvent]:
        self.calls.append((first, skip))
        return list(self.events[skip:skip + first])


class StaticRootSource:
    """RootSource with one current root and a set of published roots."""

    def __init__(self, root: int, published: Optional[dict[int, BlockRef]] = None) -> None:
        self.root = root
        self.published = published if published is not None else {root: BlockRef(block_number=1)}
        self.calls = 0

    def current_root(self) -> int:
        self.calls += 1
        return self.root

    def root_was_valid_at(self, root: int) -> Optional[BlockRef]:
        return self.published.get(root)


# =============================================================================
# Configuration
# =============================================================================

def make_config(
    page_size: int = 2,
    max_workers: int = 2,
    max_retries: int = 1,
    verify_root: bool = True,
) -> RuntimeConfig:
    return RuntimeConfig(
        hash=HashConfig(primitive="sha256-bn254"),
        retry=RetryConfig(max_retries=max_retries, initial_delay=0.0, max_delay=0.0),
        reconstruction=ReconstructionConfig(
            page_size=page_size,
            max_workers=max_workers,
            verify_root=verify_root,
        ),
    )


def no_sleep(_seconds: float) -> None:
    return None
