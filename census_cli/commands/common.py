"""
Helpers shared by CLI commands.
"""

from __future__ import annotations

from argparse import Namespace
from typing import Optional

from census.config.runtime import RuntimeConfig
from census.crypto.hashing import parse_field_element
from census.schemas.errors import ConfigurationError
from orchestrator.reconstructor import CensusReconstructor


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def runtime_config(args: Namespace) -> RuntimeConfig:
    config = getattr(args, "runtime_config", None)
    return config if config is not None else RuntimeConfig.from_env()


def make_reconstructor(args: Namespace) -> CensusReconstructor:
    config = runtime_config(args)
    if not config.subgraph.url:
        raise ConfigurationError(
            "no subgraph url configured (set subgraph.url or CENSUS_SUBGRAPH_URL)"
        )
    return CensusReconstructor.from_config(config)


def parse_root_arg(value: Optional[str]) -> Optional[int]:
    """Parse an optional --root argument (decimal or 0x hex)."""
    if value is None:
        return None
    try:
        return parse_field_element(value)
    except ValueError as e:
        raise ConfigurationError(f"invalid root {value!r}: {e}") from e
