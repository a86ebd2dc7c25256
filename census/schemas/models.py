"""
Census Schemas - Feed Records
File: models.py

Purpose: Records exchanged with the external feeds (account state,
weight-change events, root history). Numeric fields accept the decimal
strings The Graph returns for BigInt values.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from census.merkle.codec import MAX_WEIGHT, normalize_account_id


# Slot index of an account that currently has no positive weight
ABSENT_SLOT = -1


class BlockRef(BaseModel):
    """Block at which something was observed on-chain."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    block_number: int = Field(..., ge=0)
    block_timestamp: int | None = Field(default=None, ge=0)
    transaction_hash: str | None = Field(default=None)


class AccountRecord(BaseModel):
    """
    Current state of one census account, as served by the account feed.

    `slot_index` is the permanent tree slot of the account's latest
    insertion; it is ABSENT_SLOT while the account carries no weight.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    account_id: str = Field(..., description="Lower-case 0x-prefixed 20-byte address")
    weight: int = Field(..., ge=0, le=MAX_WEIGHT)
    slot_index: int = Field(default=ABSENT_SLOT, ge=ABSENT_SLOT)
    first_inserted_block: int | None = Field(default=None, ge=0)
    first_inserted_at: int | None = Field(default=None, ge=0)
    last_updated_block: int | None = Field(default=None, ge=0)

    @field_validator("account_id", mode="before")
    @classmethod
    def _normalize_account_id(cls, value: object) -> str:
        return normalize_account_id(value)

    @property
    def is_present(self) -> bool:
        """Whether the account currently occupies a live tree slot."""
        return self.weight > 0 and self.slot_index != ABSENT_SLOT


class WeightChangeEvent(BaseModel):
    """
    A single weight transition emitted by the census contract.

    Replay order is `ordering_key`: (block_number, log_index).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    account_id: str
    previous_weight: int = Field(..., ge=0, le=MAX_WEIGHT)
    new_weight: int = Field(..., ge=0, le=MAX_WEIGHT)
    block_number: int = Field(..., ge=0)
    log_index: int = Field(default=0, ge=0)
    block_timestamp: int | None = Field(default=None, ge=0)
    transaction_hash: str | None = Field(default=None)
    event_id: str | None = Field(default=None)

    @field_validator("account_id", mode="before")
    @classmethod
    def _normalize_account_id(cls, value: object) -> str:
        return normalize_account_id(value)

    @property
    def ordering_key(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


class CensusRootRecord(BaseModel):
    """A historical census root published on-chain."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    root: int = Field(..., ge=0)
    block_number: int = Field(..., ge=0)
    block_timestamp: int | None = Field(default=None, ge=0)
    transaction_hash: str | None = Field(default=None)
    updater: str | None = Field(default=None)

    def to_block_ref(self) -> BlockRef:
        return BlockRef(
            block_number=self.block_number,
            block_timestamp=self.block_timestamp,
            transaction_hash=self.transaction_hash,
        )


class GlobalStats(BaseModel):
    """Aggregate counters maintained by the indexer."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    total_accounts: int = Field(default=0, ge=0)
    total_weight: int = Field(default=0, ge=0)
    next_tree_index: int | None = Field(default=None, ge=0)
    last_updated_at: int | None = Field(default=None, ge=0)


__all__ = [
    "ABSENT_SLOT",
    "BlockRef",
    "AccountRecord",
    "WeightChangeEvent",
    "CensusRootRecord",
    "GlobalStats",
]
