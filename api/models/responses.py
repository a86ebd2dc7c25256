"""
API Response Models

Pydantic models for API response serialization.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""

    ok: bool = True
    service: str = "census-api"
    version: str = "v1"


class RootResponse(BaseModel):
    """Response for GET /census/root."""

    ok: bool = True
    root: str = Field(..., description="Root as 0x-prefixed 32-byte hex")
    root_decimal: str = Field(..., description="Root as a decimal string")
    size: int = Field(..., description="Leaf slots, tombstones included")


class SizeResponse(BaseModel):
    """Response for GET /census/size."""

    ok: bool = True
    root: str
    size: int


class ReconstructResponse(BaseModel):
    """Response for POST /census/reconstruct."""

    ok: bool = True
    root: str
    root_decimal: str
    size: int
    account_count: int
    total_weight: str
    path: str = Field(..., description="cache, accounts or events")
    from_cache: bool
    verified: bool
    pages_fetched: int = 0


class ProofResponse(BaseModel):
    """Response for GET /census/proof/{address}."""

    ok: bool = True
    address: str
    weight: str
    index: int
    root: str = Field(..., description="Decimal string")
    leaf: str = Field(..., description="Decimal string")
    siblings: list[str] = Field(default_factory=list, description="Decimal strings, bottom-up")


class AccountResponse(BaseModel):
    """Response for GET /census/accounts/{address}."""

    ok: bool = True
    address: str
    weight: str
    slot_index: int


class VerifyResponse(BaseModel):
    """Response for POST /verify."""

    ok: bool = True
    valid: bool
    root: str
    leaf: str
    depth: int


class CacheStatsResponse(BaseModel):
    """Response for GET /cache/stats."""

    ok: bool = True
    tree: Optional[dict[str, Any]] = None
    cache: Optional[dict[str, Any]] = None


class CacheClearResponse(BaseModel):
    """Response for DELETE /cache."""

    ok: bool = True
    removed: int = 0


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response."""

    ok: bool = False
    error: ErrorDetail
