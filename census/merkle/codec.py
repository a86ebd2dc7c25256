"""
Census Merkle - Leaf Codec
Packs an (account, weight) pair into a single field element and back.

Leaf layout (matches the census contract):
    leaf = (account << 88) | weight
    - top 160 bits: account address
    - bottom 88 bits: weight

The packed value must be strictly below SNARK_SCALAR_FIELD. Violations
raise EncodingError; nothing is ever truncated.
"""
from __future__ import annotations

import re

from census.crypto.hashing import SNARK_SCALAR_FIELD
from census.schemas.errors import EncodingError


WEIGHT_BITS = 88
ADDRESS_BITS = 160
MAX_WEIGHT = (1 << WEIGHT_BITS) - 1
MAX_ADDRESS = (1 << ADDRESS_BITS) - 1

# Leaf value of a removed (tombstoned) slot
ZERO_LEAF = 0

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{1,40}$")


def normalize_account_id(value: object) -> str:
    """
    Normalize an account identifier to 0x + 40 lower-case hex digits.

    Accepts 0x-prefixed hex strings of any case or non-negative ints.

    Raises:
        EncodingError: If the value is not a 160-bit account id
    """
    if isinstance(value, bool):
        raise EncodingError("account id must be a hex string or int, got bool")
    if isinstance(value, int):
        as_int = value
    elif isinstance(value, str):
        text = value.strip()
        if not _ADDRESS_RE.match(text):
            raise EncodingError(f"malformed account id: {value!r}")
        as_int = int(text, 16)
    else:
        raise EncodingError(
            f"account id must be a hex string or int, got {type(value).__name__}"
        )
    if as_int < 0 or as_int > MAX_ADDRESS:
        raise EncodingError(
            f"account id does not fit in {ADDRESS_BITS} bits",
            details={"account_id": str(value)},
        )
    return f"0x{as_int:040x}"


def pack_leaf(account_id: str | int, weight: int) -> int:
    """
    Pack an account and its weight into a leaf value.

    Args:
        account_id: 0x-prefixed address or integer
        weight: Non-negative weight of at most WEIGHT_BITS bits

    Returns:
        Packed leaf, a field element

    Raises:
        EncodingError: If the weight or account does not fit, or the
            packed value is not below the field modulus

    Example:
        >>> pack_leaf("0x0000000000000000000000000000000000000001", 3)
        309485009821345068724781059
    """
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise EncodingError(f"weight must be an int, got {type(weight).__name__}")
    if weight < 0:
        raise EncodingError(f"weight must be non-negative, got {weight}")
    if weight > MAX_WEIGHT:
        raise EncodingError(
            f"weight {weight} exceeds {WEIGHT_BITS}-bit limit",
            details={"weight": str(weight), "max_weight": str(MAX_WEIGHT)},
        )
    address = int(normalize_account_id(account_id), 16)
    packed = (address << WEIGHT_BITS) | weight
    if packed >= SNARK_SCALAR_FIELD:
        raise EncodingError(
            f"packed leaf exceeds SNARK scalar field: {packed}",
            details={"leaf": str(packed)},
        )
    return packed


def unpack_leaf(leaf: int) -> tuple[str, int]:
    """
    Split a leaf into (account_id, weight).

    Inverse of pack_leaf for every value pack_leaf produces.

    Raises:
        EncodingError: If the leaf is not a field element
    """
    if isinstance(leaf, bool) or not isinstance(leaf, int):
        raise EncodingError(f"leaf must be an int, got {type(leaf).__name__}")
    if leaf < 0 or leaf >= SNARK_SCALAR_FIELD:
        raise EncodingError("leaf is outside the scalar field", details={"leaf": str(leaf)})
    weight = leaf & MAX_WEIGHT
    address = leaf >> WEIGHT_BITS
    return f"0x{address:040x}", weight


__all__ = [
    "WEIGHT_BITS",
    "ADDRESS_BITS",
    "MAX_WEIGHT",
    "MAX_ADDRESS",
    "ZERO_LEAF",
    "normalize_account_id",
    "pack_leaf",
    "unpack_leaf",
]
