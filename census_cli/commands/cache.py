"""
CLI Cache Command

Inspect or clear the snapshot cache.

Usage:
    census cache stats [--json]
    census cache clear
"""

from __future__ import annotations

import json
from argparse import Namespace

from census_cli.commands.common import EXIT_SUCCESS, runtime_config
from orchestrator.reconstructor import build_cache_store


def cache_stats_cmd(args: Namespace) -> int:
    store = build_cache_store(runtime_config(args).cache)
    stats = store.stats().to_dict()
    if args.json:
        print(json.dumps(stats, indent=2))
    else:
        for key, value in stats.items():
            print(f"{key}: {value if value is not None else '-'}")
    return EXIT_SUCCESS


def cache_clear_cmd(args: Namespace) -> int:
    store = build_cache_store(runtime_config(args).cache)
    removed = store.clear()
    print(f"Removed {removed} cache entries")
    return EXIT_SUCCESS
