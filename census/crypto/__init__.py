"""
Census cryptographic utilities.

Pinned field hash primitives and field-element encoding helpers.
"""
from .hashing import (
    HASH_PRIMITIVES,
    POSEIDON_BN254_T3,
    SHA256_BN254,
    SNARK_SCALAR_FIELD,
    HashFunction,
    HashPrimitive,
    from_hex,
    is_field_element,
    load_hasher,
    parse_field_element,
    sha256,
    sha256_field_hash,
    to_hex,
)

__all__ = [
    "SNARK_SCALAR_FIELD",
    "HashFunction",
    "HashPrimitive",
    "POSEIDON_BN254_T3",
    "SHA256_BN254",
    "HASH_PRIMITIVES",
    "sha256",
    "sha256_field_hash",
    "load_hasher",
    "is_field_element",
    "to_hex",
    "from_hex",
    "parse_field_element",
]
