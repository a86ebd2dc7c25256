"""
Census Merkle - Lean Incremental Merkle Tree
Binary Merkle tree with no fixed depth and no padding leaves.

Canonical Commitment Rules (Hard Contracts):
1. Parent hashing: parent = hash(min(left, right), max(left, right))
2. Odd node rule: a node without a sibling is carried up unchanged
3. Depth: ceil(log2(size)); a single leaf is its own root
4. Empty tree: root is 0, which callers must special-case
5. Removal: a slot is zeroed with update(index, 0), never deleted

Determinism Notes:
- Leaf order is slot order, supplied by the caller
- This module never sorts leaves

Concurrency: a LeanIMT instance is single-writer. Callers serialize
insert/update calls; reads of a built tree need no locking.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from census.crypto.hashing import HashFunction, is_field_element
from census.merkle.proofs import LeanIMTProof
from census.schemas.errors import EncodingError, HashError, IndexOutOfRange


# Root sentinel of a tree without leaves
EMPTY_TREE_ROOT = 0


class LeanIMT:
    """
    Lean incremental Merkle tree over field elements.

    `_nodes[0]` holds the leaves; `_nodes[level][i]` is the value of the
    node covering leaves [i * 2**level, (i + 1) * 2**level). The last
    level holds the root.

    Example:
        >>> tree = LeanIMT(hasher)
        >>> tree.insert(leaf_a)
        >>> tree.insert(leaf_b)
        >>> tree.root == hasher(min(leaf_a, leaf_b), max(leaf_a, leaf_b))
        True
    """

    def __init__(self, hasher: HashFunction, leaves: Iterable[int] | None = None) -> None:
        self._hasher = hasher
        self._nodes: list[list[int]] = [[]]
        if leaves is not None:
            self.insert_many(list(leaves))

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Number of leaf slots, tombstones included."""
        return len(self._nodes[0])

    @property
    def depth(self) -> int:
        return len(self._nodes) - 1

    @property
    def root(self) -> int:
        if self.size == 0:
            return EMPTY_TREE_ROOT
        return self._nodes[self.depth][0]

    @property
    def leaves(self) -> list[int]:
        return list(self._nodes[0])

    @property
    def hasher(self) -> HashFunction:
        return self._hasher

    def leaf_at(self, index: int) -> int:
        self._check_index(index)
        return self._nodes[0][index]

    def index_of(self, leaf: int) -> int:
        """First slot holding `leaf`, or -1."""
        try:
            return self._nodes[0].index(leaf)
        except ValueError:
            return -1

    def has(self, leaf: int) -> bool:
        return self.index_of(leaf) != -1

    def __len__(self) -> int:
        return self.size

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(self, leaf: int) -> None:
        """
        Append a leaf at the next slot and recompute its path to the root.

        Raises:
            EncodingError: If the leaf is not a field element
            HashError: If the hash primitive fails
        """
        self._check_leaf(leaf)
        index = self.size
        tree_depth = index.bit_length()
        while len(self._nodes) <= tree_depth:
            self._nodes.append([])

        node = leaf
        for level in range(tree_depth):
            self._set_node(level, index, node)
            if index & 1:
                node = self._hash(self._nodes[level][index - 1], node)
            index >>= 1

        self._nodes[tree_depth] = [node]

    def insert_many(self, leaves: Sequence[int]) -> None:
        """
        Append several leaves, recomputing every affected parent once.

        Produces the same tree as calling insert() for each leaf in order.
        """
        if not leaves:
            return
        for leaf in leaves:
            self._check_leaf(leaf)

        start = self.size
        self._nodes[0].extend(leaves)
        tree_depth = (self.size - 1).bit_length()
        while len(self._nodes) <= tree_depth:
            self._nodes.append([])

        for level in range(tree_depth):
            current = self._nodes[level]
            parents = self._nodes[level + 1]
            first_parent = start >> 1
            del parents[first_parent:]
            for parent_index in range(first_parent, (len(current) + 1) // 2):
                left = current[2 * parent_index]
                right_index = 2 * parent_index + 1
                if right_index < len(current):
                    parents.append(self._hash(left, current[right_index]))
                else:
                    parents.append(left)
            start = first_parent

    def update(self, index: int, leaf: int) -> None:
        """
        Replace the leaf at `index` and recompute its path to the root.

        Raises:
            IndexOutOfRange: If index is negative or >= size
            EncodingError: If the leaf is not a field element
            HashError: If the hash primitive fails
        """
        self._check_index(index)
        self._check_leaf(leaf)

        node = leaf
        for level in range(self.depth):
            level_nodes = self._nodes[level]
            level_nodes[index] = node
            if index & 1:
                node = self._hash(level_nodes[index - 1], node)
            elif index + 1 < len(level_nodes):
                node = self._hash(node, level_nodes[index + 1])
            index >>= 1

        self._nodes[self.depth] = [node]

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def generate_proof(self, index: int) -> LeanIMTProof:
        """
        Build the sibling path for the leaf at `index`.

        Levels where the node is the odd one carried up record nothing.

        Raises:
            IndexOutOfRange: If index is negative or >= size
        """
        self._check_index(index)
        leaf = self._nodes[0][index]
        siblings: list[int] = []
        position = index

        for level in range(self.depth):
            sibling_index = position ^ 1
            level_nodes = self._nodes[level]
            if sibling_index < len(level_nodes):
                siblings.append(level_nodes[sibling_index])
            position >>= 1

        return LeanIMTProof(root=self.root, leaf=leaf, index=index, siblings=siblings)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _hash(self, a: int, b: int) -> int:
        lo, hi = (a, b) if a <= b else (b, a)
        try:
            result = self._hasher(lo, hi)
        except HashError:
            raise
        except Exception as e:
            raise HashError(f"hash primitive failed: {e}") from e
        if not is_field_element(result):
            raise HashError("hash primitive returned a value outside the field")
        return result

    def _set_node(self, level: int, index: int, node: int) -> None:
        level_nodes = self._nodes[level]
        if index < len(level_nodes):
            level_nodes[index] = node
        else:
            level_nodes.append(node)

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise IndexOutOfRange(f"leaf index must be an int, got {type(index).__name__}")
        if index < 0:
            raise IndexOutOfRange(f"leaf index {index} is negative", index=index, size=self.size)
        if index >= self.size:
            raise IndexOutOfRange(
                f"leaf index {index} out of range for {self.size} leaves",
                index=index,
                size=self.size,
            )

    @staticmethod
    def _check_leaf(leaf: int) -> None:
        if not is_field_element(leaf):
            raise EncodingError("leaf is not a field element", details={"leaf": repr(leaf)})


__all__ = [
    "EMPTY_TREE_ROOT",
    "LeanIMT",
]
