"""
API Request Models

Pydantic models for API request validation. Field elements travel as
strings (decimal or 0x hex) so 254-bit values survive JSON clients.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from census.merkle.codec import MAX_WEIGHT


class ReconstructRequest(BaseModel):
    """Request body for POST /census/reconstruct."""

    expected_root: Optional[str] = Field(
        default=None,
        description="Root to reconstruct (decimal or 0x hex); default: latest on-chain root",
    )
    from_events: bool = Field(
        default=False,
        description="Replay weight-change events instead of reading account state",
    )


class VerifyProofRequest(BaseModel):
    """Request body for POST /verify."""

    root: str = Field(..., min_length=1, description="Claimed root")
    leaf: Optional[str] = Field(default=None, description="Packed leaf value")
    address: Optional[str] = Field(default=None, description="Account address (with weight)")
    weight: Optional[int] = Field(default=None, ge=0, le=MAX_WEIGHT)
    siblings: list[str] = Field(default_factory=list, description="Siblings, bottom-up")

    @model_validator(mode="after")
    def _leaf_or_account(self) -> "VerifyProofRequest":
        if self.leaf is None and (self.address is None or self.weight is None):
            raise ValueError("provide either leaf or both address and weight")
        return self
