"""
CLI command modules.
"""

from census_cli.commands import cache, leaf, proof, reconstruct, verify

__all__ = ["cache", "leaf", "proof", "reconstruct", "verify"]
