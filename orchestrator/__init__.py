"""
Orchestrator

Census reconstruction over feeds, cache and tree engine.
"""
from .reconstructor import CensusReconstructor, CensusTree, build_cache_store

__all__ = ["CensusReconstructor", "CensusTree", "build_cache_store"]
