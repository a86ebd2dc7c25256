"""
Census Merkle - Lean-IMT Proofs
Proof container, stateless verification and convenience wrappers.

This module provides:
- LeanIMTProof: Dataclass representing a Lean-IMT inclusion proof
- sorted_parent: The order-independent parent rule hash(min, max)
- verify_proof: Recompute a root from a leaf and its siblings
- MerkleProver / MerkleVerifier: class-based wrappers

Verification never raises: malformed input simply fails.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from census.crypto.hashing import HashFunction, is_field_element, parse_field_element


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeanIMTProof:
    """
    A Merkle inclusion proof for one slot of a Lean-IMT.

    Attributes:
        root: The tree root this proof is against
        leaf: The leaf value at `index`
        index: 0-based slot index of the leaf
        siblings: Sibling values bottom-up; levels where the node was
            carried up without a sibling contribute nothing
    """
    root: int
    leaf: int
    index: int
    siblings: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Leaf index must be non-negative, got {self.index}")

    def verify(self, hasher: HashFunction) -> bool:
        """Check this proof against its own root."""
        return verify_proof(self.root, self.leaf, self.siblings, hasher)

    def to_dict(self) -> dict[str, Any]:
        """Wire form: field elements as decimal strings."""
        return {
            "root": str(self.root),
            "leaf": str(self.leaf),
            "index": self.index,
            "siblings": [str(s) for s in self.siblings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LeanIMTProof":
        """Parse the wire form (decimal or 0x hex strings, or ints)."""
        return cls(
            root=parse_field_element(data["root"]),
            leaf=parse_field_element(data["leaf"]),
            index=int(data["index"]),
            siblings=[parse_field_element(s) for s in data.get("siblings", [])],
        )


def sorted_parent(hasher: HashFunction, a: int, b: int) -> int:
    """
    Compute the parent of two nodes: hash(min(a, b), max(a, b)).

    The result does not depend on which child is left or right.
    """
    if a <= b:
        return hasher(a, b)
    return hasher(b, a)


def verify_proof(
    root: int,
    leaf: int,
    siblings: Sequence[int],
    hasher: HashFunction,
) -> bool:
    """
    Verify a Lean-IMT inclusion proof.

    Algorithm:
    1. Start with the leaf
    2. For each sibling (bottom-up): node = hash(min(node, s), max(node, s))
    3. Compare the result with the claimed root

    Pure function; malformed input yields False rather than an exception.

    Args:
        root: Claimed tree root
        leaf: Leaf value being proven
        siblings: Sibling values from bottom to top
        hasher: Two-input field hash

    Returns:
        True if the recomputed root equals `root`
    """
    if not is_field_element(root) or not is_field_element(leaf):
        return False
    try:
        node = leaf
        for sibling in siblings:
            if not is_field_element(sibling):
                return False
            node = sorted_parent(hasher, node, sibling)
    except Exception as e:
        logger.debug(f"Proof verification aborted: {e}")
        return False
    return node == root


class MerkleProver:
    """
    Convenience class for generating proofs from a leaf list.

    Example:
        >>> proof = MerkleProver.prove([1, 2, 3], index=2, hasher=h)
        >>> proof.leaf
        3
    """

    @staticmethod
    def prove(leaves: Sequence[int], index: int, hasher: HashFunction) -> LeanIMTProof:
        """
        Build a Lean-IMT over `leaves` and prove the leaf at `index`.

        Raises:
            IndexOutOfRange: If index is out of range
        """
        from census.merkle.lean_imt import LeanIMT

        tree = LeanIMT(hasher)
        tree.insert_many(leaves)
        return tree.generate_proof(index)

    @staticmethod
    def compute_root(leaves: Sequence[int], hasher: HashFunction) -> int:
        """Root of a Lean-IMT over `leaves` (0 when empty)."""
        from census.merkle.lean_imt import LeanIMT

        tree = LeanIMT(hasher)
        tree.insert_many(leaves)
        return tree.root


class MerkleVerifier:
    """Convenience class for verifying proofs."""

    @staticmethod
    def verify(proof: LeanIMTProof, hasher: HashFunction) -> bool:
        return proof.verify(hasher)

    @staticmethod
    def verify_leaf_in_root(
        leaf: int,
        siblings: Sequence[int],
        root: int,
        hasher: HashFunction,
    ) -> bool:
        return verify_proof(root, leaf, siblings, hasher)


__all__ = [
    "LeanIMTProof",
    "sorted_parent",
    "verify_proof",
    "MerkleProver",
    "MerkleVerifier",
]
