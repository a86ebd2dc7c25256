"""
Census Replay - Insertion Order Tracker
Replays weight-change events and assigns permanent tree slots.

Rules:
- FIRST_INSERTION (previous == 0, new > 0): slot = next_slot_index,
  then the counter is incremented. First-insertion fields are set once.
- UPDATE (previous > 0, new > 0): slot unchanged, leaf recomputed.
- REMOVAL (previous > 0, new == 0): the account is logically absent
  (slot_index = -1) but its tree slot is retained and zeroed.
- Re-inserting a removed account allocates a brand-new slot.
- Events must arrive in strictly increasing (block_number, log_index)
  order, and each event's previous weight must match the tracked weight.
  Anything else raises OrderingViolation.

All state lives in TrackerState, which the caller owns and passes in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from census.merkle.codec import ZERO_LEAF, normalize_account_id, pack_leaf
from census.schemas.errors import OrderingViolation
from census.schemas.models import ABSENT_SLOT, WeightChangeEvent


logger = logging.getLogger(__name__)


class DecisionKind(str, Enum):
    """Effect of one event on the tree."""
    FIRST_INSERTION = "first_insertion"
    UPDATE = "update"
    REMOVAL = "removal"


@dataclass
class AccountSlot:
    """
    Per-account bookkeeping.

    Attributes:
        account_id: Normalized account address
        weight: Current weight
        slot_index: Live slot, or -1 while the account has no weight
        tree_slot: Last slot the account occupied (kept after removal)
        first_inserted_block: Block of the first positive-weight transition
        first_inserted_at: Timestamp of the first positive-weight transition
        slot_history: Every slot ever assigned, oldest first
    """
    account_id: str
    weight: int = 0
    slot_index: int = ABSENT_SLOT
    tree_slot: int = ABSENT_SLOT
    first_inserted_block: Optional[int] = None
    first_inserted_at: Optional[int] = None
    slot_history: list[int] = field(default_factory=list)

    @property
    def is_present(self) -> bool:
        return self.slot_index != ABSENT_SLOT


@dataclass
class TrackerState:
    """
    Explicit replay state.

    Attributes:
        next_slot_index: Global counter, bumped once per first insertion
        accounts: Per-account slots keyed by normalized address
        last_key: Ordering key of the last applied event
        events_applied: Number of events consumed
    """
    next_slot_index: int = 0
    accounts: dict[str, AccountSlot] = field(default_factory=dict)
    last_key: Optional[tuple[int, int]] = None
    events_applied: int = 0


@dataclass(frozen=True)
class SlotDecision:
    """Outcome of applying one event."""
    kind: DecisionKind
    account_id: str
    slot_index: int
    leaf: int
    previous_weight: int
    new_weight: int
    ordering_key: tuple[int, int]


class InsertionOrderTracker:
    """
    Decides, per event, whether it inserts, updates or removes a leaf.

    Example:
        >>> tracker = InsertionOrderTracker()
        >>> d = tracker.apply(event_insert_a)
        >>> d.kind, d.slot_index
        (<DecisionKind.FIRST_INSERTION: 'first_insertion'>, 0)
    """

    def __init__(self, state: TrackerState | None = None) -> None:
        self.state = state if state is not None else TrackerState()

    def apply(self, event: WeightChangeEvent) -> Optional[SlotDecision]:
        """
        Apply one event to the state.

        Returns:
            The decision, or None for a 0 -> 0 event (no tree effect)

        Raises:
            OrderingViolation: Event out of order, or inconsistent with
                the tracked weight of the account
        """
        key = event.ordering_key
        self._check_order(event, key)

        account = self.state.accounts.get(event.account_id)
        tracked_weight = account.weight if account else 0
        if event.previous_weight != tracked_weight:
            raise OrderingViolation(
                f"event at {key} says previous weight {event.previous_weight} "
                f"but tracked weight is {tracked_weight}",
                account_id=event.account_id,
                details={"ordering_key": list(key)},
            )

        self.state.last_key = key
        self.state.events_applied += 1

        prev, new = event.previous_weight, event.new_weight
        if prev == 0 and new == 0:
            logger.warning(f"Ignoring 0 -> 0 weight event for {event.account_id} at {key}")
            return None

        if account is None:
            account = AccountSlot(account_id=event.account_id)
            self.state.accounts[event.account_id] = account

        if prev == 0:
            return self._first_insertion(account, event)
        if new == 0:
            return self._removal(account, event)
        return self._update(account, event)

    def apply_all(self, events: list[WeightChangeEvent]) -> list[SlotDecision]:
        """Apply events in order, dropping the None (no-op) outcomes."""
        decisions = []
        for event in events:
            decision = self.apply(event)
            if decision is not None:
                decisions.append(decision)
        return decisions

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def slot_of(self, account_id: str) -> int:
        """Live slot of an account, or -1."""
        account = self.state.accounts.get(normalize_account_id(account_id))
        return account.slot_index if account else ABSENT_SLOT

    def is_present(self, account_id: str) -> bool:
        return self.slot_of(account_id) != ABSENT_SLOT

    def weight_of(self, account_id: str) -> int:
        account = self.state.accounts.get(normalize_account_id(account_id))
        return account.weight if account else 0

    def account(self, account_id: str) -> Optional[AccountSlot]:
        return self.state.accounts.get(normalize_account_id(account_id))

    def accounts(self) -> Iterator[AccountSlot]:
        """Accounts currently present, in slot order."""
        present = [a for a in self.state.accounts.values() if a.is_present]
        return iter(sorted(present, key=lambda a: a.slot_index))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _check_order(self, event: WeightChangeEvent, key: tuple[int, int]) -> None:
        last = self.state.last_key
        if last is not None and key <= last:
            raise OrderingViolation(
                f"event ordering key {key} does not follow {last}",
                account_id=event.account_id,
                details={"ordering_key": list(key), "last_key": list(last)},
            )

    def _first_insertion(self, account: AccountSlot, event: WeightChangeEvent) -> SlotDecision:
        slot = self.state.next_slot_index
        self.state.next_slot_index += 1

        account.weight = event.new_weight
        account.slot_index = slot
        account.tree_slot = slot
        account.slot_history.append(slot)
        if account.first_inserted_block is None:
            account.first_inserted_block = event.block_number
            account.first_inserted_at = event.block_timestamp

        return SlotDecision(
            kind=DecisionKind.FIRST_INSERTION,
            account_id=account.account_id,
            slot_index=slot,
            leaf=pack_leaf(account.account_id, event.new_weight),
            previous_weight=event.previous_weight,
            new_weight=event.new_weight,
            ordering_key=event.ordering_key,
        )

    def _update(self, account: AccountSlot, event: WeightChangeEvent) -> SlotDecision:
        account.weight = event.new_weight
        return SlotDecision(
            kind=DecisionKind.UPDATE,
            account_id=account.account_id,
            slot_index=account.slot_index,
            leaf=pack_leaf(account.account_id, event.new_weight),
            previous_weight=event.previous_weight,
            new_weight=event.new_weight,
            ordering_key=event.ordering_key,
        )

    def _removal(self, account: AccountSlot, event: WeightChangeEvent) -> SlotDecision:
        slot = account.tree_slot
        account.weight = 0
        account.slot_index = ABSENT_SLOT
        return SlotDecision(
            kind=DecisionKind.REMOVAL,
            account_id=account.account_id,
            slot_index=slot,
            leaf=ZERO_LEAF,
            previous_weight=event.previous_weight,
            new_weight=0,
            ordering_key=event.ordering_key,
        )


__all__ = [
    "DecisionKind",
    "AccountSlot",
    "TrackerState",
    "SlotDecision",
    "InsertionOrderTracker",
]
