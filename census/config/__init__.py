"""
Runtime Configuration Module

Provides configuration loading and management for census reconstruction.
"""

from .runtime import (
    ENV_PREFIX,
    CacheConfig,
    HashConfig,
    HttpConfig,
    ReconstructionConfig,
    RetryConfig,
    RuntimeConfig,
    SubgraphConfig,
    get_default_config,
    set_default_config,
)

__all__ = [
    "ENV_PREFIX",
    "CacheConfig",
    "HashConfig",
    "HttpConfig",
    "ReconstructionConfig",
    "RetryConfig",
    "RuntimeConfig",
    "SubgraphConfig",
    "get_default_config",
    "set_default_config",
]
