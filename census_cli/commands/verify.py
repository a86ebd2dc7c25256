"""
CLI Verify Command

Check an inclusion proof offline against a root.

Usage:
    census verify --root R --leaf L --siblings S1,S2,...
    census verify --root R --address A --weight W --siblings S1,S2,...
"""

from __future__ import annotations

import json
import logging
from argparse import Namespace
from dataclasses import asdict, dataclass

from census.crypto.hashing import load_hasher, parse_field_element, to_hex
from census.merkle.codec import pack_leaf
from census.merkle.proofs import verify_proof
from census.schemas.errors import ConfigurationError
from census_cli.commands.common import (
    EXIT_SUCCESS,
    EXIT_VERIFICATION_FAILED,
    runtime_config,
)


logger = logging.getLogger(__name__)


@dataclass
class VerifySummary:
    """Outcome of an offline proof check."""
    root: str
    leaf: str
    depth: int
    valid: bool


def parse_siblings(raw: str | None) -> list[int]:
    if not raw:
        return []
    try:
        return [parse_field_element(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ConfigurationError(f"invalid sibling list: {e}") from e


def resolve_leaf(args: Namespace) -> int:
    if args.leaf is not None:
        try:
            return parse_field_element(args.leaf)
        except ValueError as e:
            raise ConfigurationError(f"invalid leaf {args.leaf!r}: {e}") from e
    if args.address is None or args.weight is None:
        raise ConfigurationError("either --leaf or both --address and --weight are required")
    return pack_leaf(args.address, args.weight)


def verify_cmd(args: Namespace) -> int:
    config = runtime_config(args)
    hasher = load_hasher(config.hash.primitive, config.hash.provider)

    try:
        root = parse_field_element(args.root)
    except ValueError as e:
        raise ConfigurationError(f"invalid root {args.root!r}: {e}") from e
    leaf = resolve_leaf(args)
    siblings = parse_siblings(args.siblings)

    valid = verify_proof(root, leaf, siblings, hasher)
    summary = VerifySummary(root=to_hex(root), leaf=str(leaf), depth=len(siblings), valid=valid)

    if args.json:
        print(json.dumps(asdict(summary), indent=2))
    else:
        print(f"root: {summary.root}")
        print(f"leaf: {summary.leaf}")
        print(f"depth: {summary.depth}")
        print(f"valid: {str(summary.valid).lower()}")

    if valid:
        logger.info("Proof verified")
        return EXIT_SUCCESS
    logger.warning("Proof verification failed")
    return EXIT_VERIFICATION_FAILED
