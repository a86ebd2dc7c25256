"""
API Dependencies

Dependency injection for the API. One CensusReconstructor is shared by
all requests; tests replace it through app.dependency_overrides.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from census.config.runtime import RuntimeConfig
from census.crypto.hashing import HashFunction
from orchestrator.reconstructor import CensusReconstructor

logger = logging.getLogger(__name__)

_reconstructor: Optional[CensusReconstructor] = None
_reconstructor_lock = threading.Lock()


def _load_runtime_config() -> RuntimeConfig:
    """Load RuntimeConfig from a config file, then overlay environment variables.

    Search order for config file:
      1. ./census.yaml
      2. ./census.json
      3. ~/.config/census/config.yaml

    Environment variables ALWAYS override config file values.
    """
    search_paths = [
        Path.cwd() / "census.yaml",
        Path.cwd() / "census.json",
        Path.home() / ".config" / "census" / "config.yaml",
    ]

    for path in search_paths:
        if path.exists():
            logger.info(f"Loaded config from {path}")
            return RuntimeConfig.from_file(path).with_env_overrides()

    return RuntimeConfig.from_env()


def get_reconstructor() -> CensusReconstructor:
    """Shared reconstructor, created from configuration on first use."""
    global _reconstructor
    with _reconstructor_lock:
        if _reconstructor is None:
            _reconstructor = CensusReconstructor.from_config(_load_runtime_config())
        return _reconstructor


def reset_reconstructor() -> None:
    global _reconstructor
    with _reconstructor_lock:
        _reconstructor = None


def get_hasher() -> HashFunction:
    return get_reconstructor().hasher
