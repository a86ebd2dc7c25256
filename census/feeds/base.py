"""
Census Feeds - Contracts

Protocols for the external sources a reconstruction consumes. Any object
with matching methods can be passed in; SubgraphClient implements all
three over GraphQL, and tests use in-memory fakes.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from census.schemas.models import AccountRecord, BlockRef, WeightChangeEvent


@runtime_checkable
class RootSource(Protocol):
    """Authoritative on-chain census roots."""

    def current_root(self) -> int:
        """Root currently published by the census contract (0 if none)."""
        ...

    def root_was_valid_at(self, root: int) -> Optional[BlockRef]:
        """Block at which `root` was published, or None if it never was."""
        ...


@runtime_checkable
class AccountFeed(Protocol):
    """Current account state, paginated in slot order."""

    def fetch_accounts(self, first: int, skip: int) -> list[AccountRecord]:
        """
        Accounts with weight > 0, ordered by slot index ascending.

        An empty page means the listing is exhausted.
        """
        ...

    def tree_size(self) -> Optional[int]:
        """Slots ever assigned (tombstones included), or None if unknown."""
        ...


@runtime_checkable
class EventFeed(Protocol):
    """Historical weight-change events."""

    def fetch_events(self, first: int, skip: int) -> list[WeightChangeEvent]:
        ...


__all__ = ["RootSource", "AccountFeed", "EventFeed"]
