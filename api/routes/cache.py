"""
Cache Routes

Cache statistics and reset.
"""

from fastapi import APIRouter, Depends

from api.deps import get_reconstructor
from api.models.responses import CacheClearResponse, CacheStatsResponse
from orchestrator.reconstructor import CensusReconstructor


router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats", response_model=CacheStatsResponse)
def cache_stats(reconstructor: CensusReconstructor = Depends(get_reconstructor)) -> CacheStatsResponse:
    stats = reconstructor.stats()
    return CacheStatsResponse(tree=stats["tree"], cache=stats["cache"])


@router.delete("", response_model=CacheClearResponse)
def clear_cache(reconstructor: CensusReconstructor = Depends(get_reconstructor)) -> CacheClearResponse:
    """Drop the in-memory tree and every cached snapshot."""
    return CacheClearResponse(removed=reconstructor.clear())
