"""
CLI Reconstruct Command

Rebuild the census tree from the subgraph and report its root.

Usage:
    census reconstruct [--root HEX] [--events] [--json]
"""

from __future__ import annotations

import json
import logging
from argparse import Namespace

from census_cli.commands.common import EXIT_SUCCESS, make_reconstructor, parse_root_arg
from orchestrator.reconstructor import CensusTree


logger = logging.getLogger(__name__)


def print_summary_human(tree: CensusTree) -> None:
    print(f"root: {tree.to_dict()['root']}")
    print(f"size: {tree.size}")
    print(f"accounts: {tree.account_count}")
    print(f"total_weight: {tree.total_weight}")
    print(f"path: {tree.path}")
    print(f"verified: {str(tree.verified_against is not None).lower()}")


def reconstruct_cmd(args: Namespace) -> int:
    reconstructor = make_reconstructor(args)
    expected = parse_root_arg(args.root)

    if args.events:
        tree = reconstructor.reconstruct_from_events(expected_root=expected)
    else:
        tree = reconstructor.reconstruct(expected_root=expected)

    if args.json:
        print(json.dumps(tree.to_dict(), indent=2))
    else:
        print_summary_human(tree)
    logger.info("Reconstruction finished")
    return EXIT_SUCCESS
