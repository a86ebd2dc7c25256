"""
CLI Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    python -m census_cli reconstruct [--root HEX] [--events] [--json]
    python -m census_cli proof ADDRESS [--root HEX] [--json]
    python -m census_cli verify --root R (--leaf L | --address A --weight W) --siblings S1,S2
    python -m census_cli leaf pack ADDRESS WEIGHT
    python -m census_cli leaf unpack LEAF
    python -m census_cli cache stats|clear
    python -m census_cli config --init|--show

Environment Variables:
    CENSUS_SUBGRAPH_URL         Census subgraph GraphQL endpoint
    CENSUS_SUBGRAPH_API_KEY     Bearer token for the subgraph gateway
    CENSUS_HASH_PRIMITIVE       poseidon-bn254-t3 (default) or sha256-bn254
    CENSUS_HASH_PROVIDER        "module:callable" Poseidon implementation
    CENSUS_CACHE_BACKEND        memory or file
    CENSUS_CACHE_DIR            Directory of the file cache
    CENSUS_LOG_LEVEL            Log level (default: INFO)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Sequence

from census.schemas.errors import CensusException, RootMismatchError
from census_cli.commands import cache, leaf, proof, reconstruct, verify
from census_cli.commands.common import (
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    EXIT_VERIFICATION_FAILED,
)
from census_cli.config import (
    DEFAULT_CONFIG_NAME,
    get_default_config_template,
    load_config,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the CLI."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Print tracebacks on errors",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="census",
        description="Census CLI - Reconstruct the voting census tree, generate and verify proofs.",
    )
    parser.add_argument(
        "--version", action="version", version="%(prog)s 0.1.0"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to configuration file (default: ./census.yaml or ~/.config/census/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- reconstruct command ---
    reconstruct_parser = subparsers.add_parser(
        "reconstruct",
        help="Rebuild the census tree from the subgraph",
        description="Fetch census state, rebuild the Lean-IMT and verify it against the on-chain root.",
    )
    reconstruct_parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="Expected root (decimal or 0x hex); default: latest published root",
    )
    reconstruct_parser.add_argument(
        "--events",
        action="store_true",
        default=False,
        help="Replay weight-change events instead of reading account state",
    )
    _add_output_flags(reconstruct_parser)
    reconstruct_parser.set_defaults(func=reconstruct.reconstruct_cmd)

    # --- proof command ---
    proof_parser = subparsers.add_parser(
        "proof",
        help="Print the inclusion proof of an account",
    )
    proof_parser.add_argument("address", type=str, help="Account address (0x...)")
    proof_parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="Expected root (decimal or 0x hex)",
    )
    _add_output_flags(proof_parser)
    proof_parser.set_defaults(func=proof.proof_cmd)

    # --- verify command ---
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify an inclusion proof offline",
        description="Fold the leaf with its siblings and compare against the root.",
    )
    verify_parser.add_argument("--root", type=str, required=True, help="Claimed root")
    verify_parser.add_argument("--leaf", type=str, default=None, help="Packed leaf value")
    verify_parser.add_argument("--address", type=str, default=None, help="Account address (with --weight)")
    verify_parser.add_argument("--weight", type=int, default=None, help="Account weight (with --address)")
    verify_parser.add_argument(
        "--siblings",
        type=str,
        default="",
        help="Comma-separated sibling values, bottom-up",
    )
    _add_output_flags(verify_parser)
    verify_parser.set_defaults(func=verify.verify_cmd)

    # --- leaf command ---
    leaf_parser = subparsers.add_parser("leaf", help="Pack or unpack census leaves")
    leaf_subparsers = leaf_parser.add_subparsers(dest="leaf_action", help="Leaf operation")

    leaf_pack = leaf_subparsers.add_parser("pack", help="Pack address and weight into a leaf")
    leaf_pack.add_argument("address", type=str, help="Account address (0x...)")
    leaf_pack.add_argument("weight", type=int, help="Account weight")
    _add_output_flags(leaf_pack)
    leaf_pack.set_defaults(func=leaf.leaf_pack_cmd)

    leaf_unpack = leaf_subparsers.add_parser("unpack", help="Split a leaf into address and weight")
    leaf_unpack.add_argument("leaf", type=str, help="Leaf value (decimal or 0x hex)")
    _add_output_flags(leaf_unpack)
    leaf_unpack.set_defaults(func=leaf.leaf_unpack_cmd)

    leaf_parser.set_defaults(func=lambda args: leaf_parser.print_help() or EXIT_SUCCESS)

    # --- cache command ---
    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the snapshot cache")
    cache_subparsers = cache_parser.add_subparsers(dest="cache_action", help="Cache operation")

    cache_stats = cache_subparsers.add_parser("stats", help="Show cache statistics")
    _add_output_flags(cache_stats)
    cache_stats.set_defaults(func=cache.cache_stats_cmd)

    cache_clear = cache_subparsers.add_parser("clear", help="Remove every cache entry")
    cache_clear.set_defaults(func=cache.cache_clear_cmd)

    cache_parser.set_defaults(func=lambda args: cache_parser.print_help() or EXIT_SUCCESS)

    # --- config command ---
    config_parser = subparsers.add_parser(
        "config",
        help="Manage CLI configuration",
        description="Initialize or display configuration.",
    )
    config_parser.add_argument(
        "--init",
        action="store_true",
        default=False,
        help="Create a template configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        default=False,
        help="Show current configuration",
    )
    config_parser.add_argument(
        "--path",
        type=str,
        default=DEFAULT_CONFIG_NAME,
        help=f"Path for config file (default: {DEFAULT_CONFIG_NAME})",
    )
    config_parser.set_defaults(func=config_cmd)

    return parser


def config_cmd(args: argparse.Namespace) -> int:
    """Handle config command."""
    if args.init:
        config_path = Path(args.path)
        if config_path.exists():
            print(f"Error: Config file already exists: {config_path}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR

        config_path.write_text(get_default_config_template())
        print(f"Created configuration file: {config_path}")
        print("\nEdit this file to configure your settings.")
        print("You can also use environment variables (CENSUS_* prefix).")
        return EXIT_SUCCESS

    if args.show:
        print(json.dumps(args.runtime_config.to_public_dict(), indent=2))
        return EXIT_SUCCESS

    # Default: show help
    print("Usage: census config [--init|--show]")
    print("  --init  Create a template configuration file")
    print("  --show  Show current configuration")
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0=success, 1=error, 2=verification failed)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    # Load configuration
    try:
        config = load_config(args.config)
    except (CensusException, OSError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    # Setup logging
    setup_logging(level=args.log_level or config.log_level)

    # Attach config to args for commands to use
    args.runtime_config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except RootMismatchError as e:
        if getattr(args, "debug", False):
            traceback.print_exc()
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_VERIFICATION_FAILED
    except CensusException as e:
        if getattr(args, "debug", False):
            traceback.print_exc()
        print(f"Error: [{e.code}] {e.message}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as e:
        if getattr(args, "debug", False):
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
