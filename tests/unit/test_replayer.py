"""
Event Replay Unit Tests
Tests for census/replay/replayer.py
"""
import pytest

from census.merkle.codec import ZERO_LEAF, pack_leaf
from census.merkle.lean_imt import LeanIMT
from census.replay.replayer import replay_events
from census.replay.tracker import DecisionKind, SlotDecision, TrackerState
from census.replay.replayer import apply_decision
from census.schemas.errors import OrderingViolation

from fixtures.census_fixtures import ALICE, BOB, CAROL, DAVE, HASHER, make_event


class TestReplay:

    def test_reference_history_layout(self, history):
        result = replay_events(history, HASHER)
        assert result.tree.leaves == [
            pack_leaf(ALICE, 15),
            ZERO_LEAF,
            pack_leaf(CAROL, 5),
            pack_leaf(DAVE, 7),
            pack_leaf(BOB, 3),
        ]
        assert result.size == 5
        assert result.root == LeanIMT(HASHER, result.tree.leaves).root

    def test_deterministic(self, history):
        first = replay_events(history, HASHER)
        second = replay_events(history, HASHER)
        assert first.root == second.root
        assert [d.slot_index for d in first.decisions] == [d.slot_index for d in second.decisions]

    def test_empty_history(self):
        result = replay_events([], HASHER)
        assert result.root == 0
        assert result.size == 0

    def test_single_insertion_root_is_leaf(self):
        result = replay_events([make_event(ALICE, 0, 9, block=1)], HASHER)
        assert result.root == pack_leaf(ALICE, 9)

    def test_removing_everything_keeps_slots(self):
        result = replay_events([
            make_event(ALICE, 0, 9, block=1),
            make_event(ALICE, 9, 0, block=2),
        ], HASHER)
        assert result.size == 1
        assert result.root == 0

    def test_resume_from_state(self, history):
        head, tail = history[:4], history[4:]
        partial = replay_events(head, HASHER)
        resumed = replay_events(tail, HASHER, tree=partial.tree, state=partial.state)
        assert resumed.root == replay_events(history, HASHER).root

    def test_state_and_tree_must_agree(self, history):
        partial = replay_events(history[:2], HASHER)
        with pytest.raises(OrderingViolation):
            replay_events(history[2:], HASHER, state=partial.state)

    def test_out_of_order_input(self, history):
        with pytest.raises(OrderingViolation):
            replay_events(list(reversed(history)), HASHER)


class TestApplyDecision:

    def test_first_insertion_must_append(self):
        tree = LeanIMT(HASHER, [1])
        decision = SlotDecision(
            kind=DecisionKind.FIRST_INSERTION,
            account_id=ALICE,
            slot_index=3,
            leaf=5,
            previous_weight=0,
            new_weight=5,
            ordering_key=(1, 0),
        )
        with pytest.raises(OrderingViolation):
            apply_decision(tree, decision)

    def test_removal_rewrites_slot(self):
        tree = LeanIMT(HASHER, [1, 2])
        apply_decision(tree, SlotDecision(
            kind=DecisionKind.REMOVAL,
            account_id=ALICE,
            slot_index=0,
            leaf=ZERO_LEAF,
            previous_weight=1,
            new_weight=0,
            ordering_key=(2, 0),
        ))
        assert tree.leaves == [0, 2]

    def test_fresh_state_default(self):
        assert TrackerState().next_slot_index == 0
