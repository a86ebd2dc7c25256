"""
CLI Leaf Command

Pack and unpack census leaves.

Usage:
    census leaf pack ADDRESS WEIGHT
    census leaf unpack LEAF
"""

from __future__ import annotations

import json
from argparse import Namespace

from census.crypto.hashing import parse_field_element, to_hex
from census.merkle.codec import pack_leaf, unpack_leaf
from census.schemas.errors import EncodingError
from census_cli.commands.common import EXIT_SUCCESS


def leaf_pack_cmd(args: Namespace) -> int:
    leaf = pack_leaf(args.address, args.weight)
    if args.json:
        print(json.dumps({"leaf": str(leaf), "hex": to_hex(leaf)}))
    else:
        print(leaf)
    return EXIT_SUCCESS


def leaf_unpack_cmd(args: Namespace) -> int:
    try:
        leaf = parse_field_element(args.leaf)
    except ValueError as e:
        raise EncodingError(f"invalid leaf {args.leaf!r}: {e}") from e
    address, weight = unpack_leaf(leaf)
    if args.json:
        print(json.dumps({"address": address, "weight": str(weight)}))
    else:
        print(f"address: {address}")
        print(f"weight: {weight}")
    return EXIT_SUCCESS
