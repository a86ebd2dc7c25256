"""
Census Replay - Event Replayer
Drives an InsertionOrderTracker and applies its decisions to a LeanIMT.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from census.crypto.hashing import HashFunction
from census.merkle.lean_imt import LeanIMT
from census.replay.tracker import (
    DecisionKind,
    InsertionOrderTracker,
    SlotDecision,
    TrackerState,
)
from census.schemas.errors import OrderingViolation
from census.schemas.models import WeightChangeEvent


logger = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    """Tree and bookkeeping produced by a replay."""
    tree: LeanIMT
    state: TrackerState
    decisions: list[SlotDecision] = field(default_factory=list)

    @property
    def root(self) -> int:
        return self.tree.root

    @property
    def size(self) -> int:
        return self.tree.size


def apply_decision(tree: LeanIMT, decision: SlotDecision) -> None:
    """
    Apply one tracker decision to the tree.

    Raises:
        OrderingViolation: If a first insertion would not land on the slot
            the tracker assigned (tree and state have diverged)
    """
    if decision.kind is DecisionKind.FIRST_INSERTION:
        if decision.slot_index != tree.size:
            raise OrderingViolation(
                f"slot {decision.slot_index} assigned but tree size is {tree.size}",
                account_id=decision.account_id,
            )
        tree.insert(decision.leaf)
    else:
        # updates and removals both rewrite the retained slot
        tree.update(decision.slot_index, decision.leaf)


def replay_events(
    events: Iterable[WeightChangeEvent],
    hasher: HashFunction,
    *,
    tree: Optional[LeanIMT] = None,
    state: Optional[TrackerState] = None,
) -> ReplayResult:
    """
    Replay ordered events from `state` (default: empty) into `tree`.

    Replaying the same ordered events from empty state always yields the
    same root and the same slot assignments.

    Args:
        events: Events in strictly increasing (block_number, log_index) order
        hasher: Two-input field hash for a fresh tree
        tree: Existing tree to extend (must match `state`)
        state: Existing tracker state to continue from

    Returns:
        ReplayResult with the tree, final state and the decisions applied
    """
    tracker = InsertionOrderTracker(state)
    target = tree if tree is not None else LeanIMT(hasher)
    if target.size != tracker.state.next_slot_index:
        raise OrderingViolation(
            f"tree has {target.size} slots but state expects {tracker.state.next_slot_index}"
        )

    decisions: list[SlotDecision] = []
    for event in events:
        decision = tracker.apply(event)
        if decision is None:
            continue
        apply_decision(target, decision)
        decisions.append(decision)
        logger.debug(
            f"{decision.kind.value} {decision.account_id} slot={decision.slot_index} "
            f"weight {decision.previous_weight}->{decision.new_weight} (size {target.size})"
        )

    logger.info(
        f"Replayed {tracker.state.events_applied} events: "
        f"{target.size} slots, {sum(1 for _ in tracker.accounts())} present accounts"
    )
    return ReplayResult(tree=target, state=tracker.state, decisions=decisions)


__all__ = [
    "ReplayResult",
    "apply_decision",
    "replay_events",
]
