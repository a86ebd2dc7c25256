"""
Census Crypto - Hashing Utilities
Field arithmetic constants and the pinned two-input hash primitive.

This module provides:
- SNARK_SCALAR_FIELD: the BN254 scalar field every leaf and node lives in
- HashPrimitive: an explicit, pinned description of a hash instantiation
- load_hasher: resolve a configured primitive to a callable
- Hex encoding/decoding of field elements with 0x prefix

Security/Determinism Notes:
- The on-chain verifier uses Poseidon over BN254 with t=3 (two inputs),
  8 full rounds and 57 partial rounds (circomlib constants). Any other
  instantiation silently produces wrong-but-plausible roots, so the
  primitive is always named explicitly in configuration.
- The Poseidon implementation itself is supplied by the deployment as a
  "module:callable" provider.
- "sha256-bn254" is a self-contained field hash for offline work and
  tests. Its roots never match the on-chain contract.
"""
from __future__ import annotations

import hashlib
import importlib
from dataclasses import dataclass
from typing import Callable, Optional

from census.schemas.errors import ConfigurationError, HashError


# BN254 scalar field modulus
SNARK_SCALAR_FIELD: int = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

# Two-input field hash: hash(a, b) -> field element
HashFunction = Callable[[int, int], int]


@dataclass(frozen=True)
class HashPrimitive:
    """
    Pinned parameterization of a two-input field hash.

    Attributes:
        name: Registry name used in configuration
        field_modulus: Prime field the inputs and output live in
        width: Permutation width t (inputs + capacity)
        full_rounds: Number of full rounds (Poseidon family only)
        partial_rounds: Number of partial rounds (Poseidon family only)
        onchain_compatible: Whether roots match the census contract
    """
    name: str
    field_modulus: int
    width: int
    full_rounds: int = 0
    partial_rounds: int = 0
    onchain_compatible: bool = False


POSEIDON_BN254_T3 = HashPrimitive(
    name="poseidon-bn254-t3",
    field_modulus=SNARK_SCALAR_FIELD,
    width=3,
    full_rounds=8,
    partial_rounds=57,
    onchain_compatible=True,
)

SHA256_BN254 = HashPrimitive(
    name="sha256-bn254",
    field_modulus=SNARK_SCALAR_FIELD,
    width=2,
)

HASH_PRIMITIVES: dict[str, HashPrimitive] = {
    POSEIDON_BN254_T3.name: POSEIDON_BN254_T3,
    SHA256_BN254.name: SHA256_BN254,
}


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash of raw bytes.

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).digest()


def sha256_field_hash(a: int, b: int) -> int:
    """
    Hash two field elements with SHA-256 and reduce into the field.

    Rule: int(sha256(a_be32 || b_be32)) mod SNARK_SCALAR_FIELD

    Raises:
        HashError: If either input is not a field element
    """
    for value in (a, b):
        if not isinstance(value, int) or isinstance(value, bool):
            raise HashError(f"hash input must be an int, got {type(value).__name__}")
        if value < 0 or value >= SNARK_SCALAR_FIELD:
            raise HashError("hash input outside the scalar field", details={"value": str(value)})
    digest = sha256(a.to_bytes(32, "big") + b.to_bytes(32, "big"))
    return int.from_bytes(digest, "big") % SNARK_SCALAR_FIELD


_BUILTIN_HASHERS: dict[str, HashFunction] = {
    SHA256_BN254.name: sha256_field_hash,
}


def _import_provider(provider: str) -> HashFunction:
    """Import a "package.module:callable" hash provider."""
    module_name, sep, attr = provider.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"Hash provider must look like 'package.module:callable', got {provider!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(
            f"Cannot import hash provider module {module_name!r}: {e}"
        ) from e
    func = getattr(module, attr, None)
    if not callable(func):
        raise ConfigurationError(f"Hash provider {provider!r} is not callable")
    return func


def load_hasher(primitive: str, provider: Optional[str] = None) -> HashFunction:
    """
    Resolve a pinned hash primitive to a callable.

    Args:
        primitive: Registered primitive name (see HASH_PRIMITIVES)
        provider: Optional "module:callable" implementing the primitive

    Returns:
        Two-input field hash function

    Raises:
        ConfigurationError: Unknown primitive, or no implementation available
    """
    if primitive not in HASH_PRIMITIVES:
        raise ConfigurationError(
            f"Unknown hash primitive {primitive!r}",
            details={"known": sorted(HASH_PRIMITIVES)},
        )
    if provider:
        return _import_provider(provider)
    if primitive in _BUILTIN_HASHERS:
        return _BUILTIN_HASHERS[primitive]
    raise ConfigurationError(
        f"Hash primitive {primitive!r} needs a provider "
        "(set hash.provider or CENSUS_HASH_PROVIDER to 'module:callable')"
    )


def is_field_element(value: object) -> bool:
    """Check that a value is an int in [0, SNARK_SCALAR_FIELD)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < SNARK_SCALAR_FIELD
    )


def to_hex(value: int) -> str:
    """
    Render a field element as a 0x-prefixed, 64-digit hex string.

    Example:
        >>> to_hex(255)
        '0x00000000000000000000000000000000000000000000000000000000000000ff'
    """
    if value < 0:
        raise ValueError(f"Field elements are non-negative, got {value}")
    return f"0x{value:064x}"


def from_hex(hex_string: str) -> int:
    """
    Parse a 0x-prefixed hex string into an integer.

    Raises:
        ValueError: If the prefix is missing or the digits are invalid
    """
    if not hex_string.startswith(("0x", "0X")):
        raise ValueError(
            f"Hex string must start with '0x' prefix, got: {hex_string[:10]}..."
        )
    hex_content = hex_string[2:]
    if not hex_content:
        raise ValueError("Hex string has no digits after 0x prefix")
    try:
        return int(hex_content, 16)
    except ValueError as e:
        raise ValueError(f"Invalid hex characters in string: {e}") from e


def parse_field_element(value: str | int) -> int:
    """
    Parse a field element given as int, decimal string or 0x hex string.

    Raises:
        ValueError: If the value is malformed or outside the field
    """
    if isinstance(value, bool):
        raise ValueError("booleans are not field elements")
    if isinstance(value, int):
        parsed = value
    else:
        text = value.strip()
        parsed = from_hex(text) if text.lower().startswith("0x") else int(text, 10)
    if not 0 <= parsed < SNARK_SCALAR_FIELD:
        raise ValueError(f"value {parsed} is outside the scalar field")
    return parsed


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
