"""
Census Merkle - Lean Incremental Merkle Tree and Commitments
Leaf packing, Lean-IMT construction, proof generation/verification.

This module provides:
- pack_leaf / unpack_leaf: (account << 88) | weight leaf codec
- LeanIMT: incremental tree with insert / update / root / proofs
- LeanIMTProof: Dataclass representing an inclusion proof
- verify_proof: Recompute a root from leaf + siblings

Canonical Commitment Rules:
1. Parent hashing: hash(min(left, right), max(left, right))
2. Odd node: carried up unchanged (no padding)
3. Empty tree: root 0
4. Single leaf: root = leaf
5. Removed slot: zero leaf at the same index

Usage:
    from census.crypto import load_hasher
    from census.merkle import LeanIMT, pack_leaf, verify_proof

    hasher = load_hasher("sha256-bn254")
    tree = LeanIMT(hasher)
    tree.insert(pack_leaf("0x00000000000000000000000000000000000000aa", 1))
    proof = tree.generate_proof(0)
    assert verify_proof(tree.root, proof.leaf, proof.siblings, hasher)
"""
from .codec import (
    ADDRESS_BITS,
    MAX_ADDRESS,
    MAX_WEIGHT,
    WEIGHT_BITS,
    ZERO_LEAF,
    normalize_account_id,
    pack_leaf,
    unpack_leaf,
)

from .proofs import (
    LeanIMTProof,
    MerkleProver,
    MerkleVerifier,
    sorted_parent,
    verify_proof,
)

from .lean_imt import (
    EMPTY_TREE_ROOT,
    LeanIMT,
)


__all__ = [
    # Codec
    "WEIGHT_BITS",
    "ADDRESS_BITS",
    "MAX_WEIGHT",
    "MAX_ADDRESS",
    "ZERO_LEAF",
    "normalize_account_id",
    "pack_leaf",
    "unpack_leaf",
    # Tree
    "EMPTY_TREE_ROOT",
    "LeanIMT",
    # Proofs
    "LeanIMTProof",
    "sorted_parent",
    "verify_proof",
    "MerkleProver",
    "MerkleVerifier",
]
