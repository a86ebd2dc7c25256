"""API request and response models."""

from api.models.requests import ReconstructRequest, VerifyProofRequest
from api.models.responses import (
    AccountResponse,
    CacheClearResponse,
    CacheStatsResponse,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    ProofResponse,
    ReconstructResponse,
    RootResponse,
    SizeResponse,
    VerifyResponse,
)

__all__ = [
    "ReconstructRequest",
    "VerifyProofRequest",
    "AccountResponse",
    "CacheClearResponse",
    "CacheStatsResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "ProofResponse",
    "ReconstructResponse",
    "RootResponse",
    "SizeResponse",
    "VerifyResponse",
]
