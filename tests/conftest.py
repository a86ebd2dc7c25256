"""
Pytest configuration and shared fixtures for census tests.

This conftest.py:
1. Adds project root to sys.path for imports
2. Provides commonly-used fixtures via pytest's autodiscovery
3. Configures pytest markers and settings
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Path Setup - Must happen before any local imports
# =============================================================================

# Get the project root (parent of tests/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

# Add both project root and tests root to sys.path
for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

# =============================================================================
# Import fixtures using importlib (more robust for pytest loading)
# =============================================================================

import importlib

_census = importlib.import_module("fixtures.census_fixtures")

HASHER = _census.HASHER
make_history = _census.make_history
make_config = _census.make_config
replay = _census.replay
accounts_from_replay = _census.accounts_from_replay
InMemoryAccountFeed = _census.InMemoryAccountFeed
InMemoryEventFeed = _census.InMemoryEventFeed
StaticRootSource = _census.StaticRootSource


# =============================================================================
# Pytest Fixtures (autodiscovered by pytest)
# =============================================================================

@pytest.fixture
def hasher():
    """Built-in sha256-bn254 two-input field hash."""
    return HASHER


@pytest.fixture
def history():
    """Reference weight-change history."""
    return make_history()


@pytest.fixture
def replayed(history):
    """ReplayResult of the reference history."""
    return replay(history)


@pytest.fixture
def account_feed(replayed):
    """Account feed describing the state after the reference history."""
    return InMemoryAccountFeed(accounts_from_replay(replayed), tree_size=replayed.size)


@pytest.fixture
def event_feed(history):
    return InMemoryEventFeed(history)


@pytest.fixture
def root_source(replayed):
    return StaticRootSource(replayed.root)


@pytest.fixture
def runtime_config():
    """RuntimeConfig with the built-in hash, small pages and no backoff."""
    return make_config()


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
