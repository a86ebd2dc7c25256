"""
Lean-IMT Unit Tests
Tests for census/merkle/lean_imt.py

1. Empty tree root is 0; a single leaf is its own root
2. Odd node is carried up without hashing
3. Incremental insert, batch insert and a naive level-by-level
   reference all agree
4. update() and tombstones recompute the root
5. Index and leaf validation
"""
import pytest

from census.crypto.hashing import SNARK_SCALAR_FIELD, sha256_field_hash
from census.merkle.lean_imt import EMPTY_TREE_ROOT, LeanIMT
from census.merkle.proofs import sorted_parent
from census.schemas.errors import EncodingError, HashError, IndexOutOfRange


H = sha256_field_hash


def naive_root(leaves: list[int]) -> int:
    """Reference: hash pairs level by level, carrying the odd node up."""
    if not leaves:
        return 0
    level = list(leaves)
    while len(level) > 1:
        nxt = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                nxt.append(sorted_parent(H, level[i], level[i + 1]))
            else:
                nxt.append(level[i])
        level = nxt
    return level[0]


class TestEmptyAndSingle:

    def test_empty_root_is_zero(self):
        tree = LeanIMT(H)
        assert tree.root == EMPTY_TREE_ROOT == 0
        assert tree.size == 0
        assert tree.depth == 0

    def test_single_leaf_is_root(self):
        tree = LeanIMT(H, [42])
        assert tree.root == 42
        assert tree.depth == 0

    def test_two_leaves(self):
        tree = LeanIMT(H, [9, 4])
        assert tree.root == H(4, 9)
        assert tree.depth == 1


class TestOddNodeRule:

    def test_three_leaves_carry_third(self):
        tree = LeanIMT(H, [1, 2, 3])
        assert tree.root == sorted_parent(H, sorted_parent(H, 1, 2), 3)
        assert tree.depth == 2

    def test_five_leaves(self):
        leaves = [11, 22, 33, 44, 55]
        assert LeanIMT(H, leaves).root == naive_root(leaves)


class TestAgainstReference:

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 7, 8, 9, 16, 17, 33])
    def test_batch_matches_naive(self, n):
        leaves = [(i * 7919 + 13) % 100003 for i in range(n)]
        assert LeanIMT(H, leaves).root == naive_root(leaves)

    @pytest.mark.parametrize("n", [1, 2, 3, 6, 9, 17])
    def test_incremental_matches_batch(self, n):
        leaves = [i + 1 for i in range(n)]
        incremental = LeanIMT(H)
        for leaf in leaves:
            incremental.insert(leaf)
        assert incremental.root == LeanIMT(H, leaves).root

    def test_insert_many_in_chunks(self):
        leaves = list(range(1, 20))
        tree = LeanIMT(H)
        tree.insert_many(leaves[:3])
        tree.insert_many(leaves[3:4])
        tree.insert_many(leaves[4:])
        assert tree.root == naive_root(leaves)
        assert tree.leaves == leaves

    def test_root_independent_of_sibling_order(self):
        """Swapping the two leaves of a pair does not change the root."""
        assert LeanIMT(H, [5, 6, 7]).root == LeanIMT(H, [6, 5, 7]).root


class TestUpdate:

    def test_update_matches_rebuild(self):
        leaves = [1, 2, 3, 4, 5]
        tree = LeanIMT(H, leaves)
        tree.update(4, 50)
        leaves[4] = 50
        assert tree.root == naive_root(leaves)

    def test_tombstone_keeps_size(self):
        tree = LeanIMT(H, [1, 2, 3])
        tree.update(1, 0)
        assert tree.size == 3
        assert tree.leaf_at(1) == 0
        assert tree.root == naive_root([1, 0, 3])

    def test_update_every_index(self):
        leaves = list(range(1, 12))
        tree = LeanIMT(H, leaves)
        for i in range(len(leaves)):
            leaves[i] += 100
            tree.update(i, leaves[i])
            assert tree.root == naive_root(leaves)

    def test_update_out_of_range(self):
        tree = LeanIMT(H, [1])
        with pytest.raises(IndexOutOfRange):
            tree.update(1, 5)
        with pytest.raises(IndexOutOfRange):
            tree.update(-1, 5)


class TestValidation:

    def test_leaf_outside_field(self):
        with pytest.raises(EncodingError):
            LeanIMT(H).insert(SNARK_SCALAR_FIELD)

    def test_negative_leaf(self):
        with pytest.raises(EncodingError):
            LeanIMT(H, [1, -2])

    def test_failing_hasher_wrapped(self):
        def broken(a, b):
            raise RuntimeError("boom")

        tree = LeanIMT(broken, [1])
        with pytest.raises(HashError, match="boom"):
            tree.insert(2)

    def test_hasher_output_checked(self):
        tree = LeanIMT(lambda a, b: SNARK_SCALAR_FIELD, [1])
        with pytest.raises(HashError):
            tree.insert(2)

    def test_lookup_helpers(self):
        tree = LeanIMT(H, [5, 6])
        assert tree.index_of(6) == 1
        assert tree.index_of(7) == -1
        assert tree.has(5)
        assert len(tree) == 2
