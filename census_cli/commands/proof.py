"""
CLI Proof Command

Print the inclusion proof of an account in the reconstructed census.

Usage:
    census proof ADDRESS [--root HEX] [--json]
"""

from __future__ import annotations

import json
import sys
from argparse import Namespace

from census.crypto.hashing import to_hex
from census_cli.commands.common import (
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    make_reconstructor,
    parse_root_arg,
)


def proof_cmd(args: Namespace) -> int:
    reconstructor = make_reconstructor(args)
    reconstructor.reconstruct(expected_root=parse_root_arg(args.root))

    found = reconstructor.account_proof(args.address)
    if found is None:
        print(f"Error: account not in census: {args.address}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    account, proof = found
    if args.json:
        payload = proof.to_dict()
        payload["address"] = account.account_id
        payload["weight"] = str(account.weight)
        print(json.dumps(payload, indent=2))
        return EXIT_SUCCESS

    print(f"address: {account.account_id}")
    print(f"weight: {account.weight}")
    print(f"index: {proof.index}")
    print(f"root: {to_hex(proof.root)}")
    print(f"leaf: {proof.leaf}")
    print(f"siblings ({len(proof.siblings)}):")
    for sibling in proof.siblings:
        print(f"  {sibling}")
    return EXIT_SUCCESS
