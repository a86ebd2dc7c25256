"""
CLI Configuration

Locates and loads the runtime configuration for the census CLI.
Environment variables (CENSUS_* prefix) override file settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from census.config.runtime import RuntimeConfig


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_NAME = "census.yaml"


def default_config_paths() -> list[Path]:
    return [
        Path.cwd() / "census.yaml",
        Path.cwd() / "census.yml",
        Path.cwd() / "census.json",
        Path.cwd() / ".census.json",
        Path.home() / ".config" / "census" / "config.yaml",
    ]


def load_config(config_path: Path | None = None) -> RuntimeConfig:
    """
    Load configuration from file and/or environment.

    An explicit path must exist. Without one, the first existing
    default location is used, falling back to built-in defaults.
    """
    if config_path is not None:
        config = RuntimeConfig.from_file(config_path)
        logger.debug(f"Loaded configuration from {config_path}")
        return config.with_env_overrides()

    for default_path in default_config_paths():
        if default_path.exists():
            logger.debug(f"Loaded configuration from {default_path}")
            return RuntimeConfig.from_file(default_path).with_env_overrides()

    return RuntimeConfig.from_env()


def get_default_config_template() -> str:
    """Get a template configuration file (YAML)."""
    return """# Census reconstruction settings
log_level: INFO

subgraph:
  url: null          # e.g. https://api.studio.thegraph.com/query/<id>/census/version/latest
  api_key: null

http:
  timeout: 30.0
  proxy: null

hash:
  primitive: poseidon-bn254-t3
  provider: null     # "module:callable" computing poseidon(left, right)

reconstruction:
  page_size: 100
  max_workers: 4
  verify_root: true

retry:
  max_retries: 3
  initial_delay: 1.0
  backoff_factor: 2.0
  max_delay: 10.0

cache:
  backend: file      # memory | file
  directory: ~/.cache/census
  max_entries: 10
  ttl_seconds: 86400
  integrity_check: true
"""
