"""
Census Replay

Insertion-order bookkeeping and event replay into a Lean-IMT.
"""
from .tracker import (
    AccountSlot,
    DecisionKind,
    InsertionOrderTracker,
    SlotDecision,
    TrackerState,
)
from .replayer import (
    ReplayResult,
    apply_decision,
    replay_events,
)

__all__ = [
    "AccountSlot",
    "DecisionKind",
    "InsertionOrderTracker",
    "SlotDecision",
    "TrackerState",
    "ReplayResult",
    "apply_decision",
    "replay_events",
]
