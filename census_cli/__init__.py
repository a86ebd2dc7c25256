"""
Census CLI

Command-line interface for census reconstruction and proofs.

Usage:
    python -m census_cli reconstruct [--root HEX] [--events] [--json]
    python -m census_cli proof 0xabc... [--json]
    python -m census_cli verify --root R --leaf L --siblings S1,S2
    python -m census_cli leaf pack 0xabc... 42
    python -m census_cli cache stats
"""

__version__ = "0.1.0"
