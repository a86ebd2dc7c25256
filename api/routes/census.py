"""
Census Routes

Reconstruction, roots, sizes, proofs and account lookups. Handlers are
plain functions so blocking feed calls run in the threadpool.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_reconstructor
from api.errors import InvalidRequestError, NotFoundError
from api.models.requests import ReconstructRequest
from api.models.responses import (
    AccountResponse,
    ProofResponse,
    ReconstructResponse,
    RootResponse,
    SizeResponse,
)
from census.crypto.hashing import parse_field_element, to_hex
from census.merkle.codec import normalize_account_id
from census.schemas.errors import EncodingError
from orchestrator.reconstructor import CensusReconstructor


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/census", tags=["census"])


def _parse_root(value: str) -> int:
    try:
        return parse_field_element(value)
    except ValueError as e:
        raise InvalidRequestError(f"invalid root: {e}", details={"root": value}) from e


def _normalize(address: str) -> str:
    try:
        return normalize_account_id(address)
    except EncodingError as e:
        raise InvalidRequestError(e.message, details={"address": address}) from e


@router.get("/root", response_model=RootResponse)
def get_root(reconstructor: CensusReconstructor = Depends(get_reconstructor)) -> RootResponse:
    """Root of the current census tree (reconstructed on first use)."""
    root = reconstructor.root()
    return RootResponse(root=to_hex(root), root_decimal=str(root), size=reconstructor.size())


@router.get("/size", response_model=SizeResponse)
def get_size(
    root: Optional[str] = Query(default=None, description="Root to size; default: current tree"),
    reconstructor: CensusReconstructor = Depends(get_reconstructor),
) -> SizeResponse:
    if root is None:
        current = reconstructor.root()
        return SizeResponse(root=to_hex(current), size=reconstructor.size())

    target = _parse_root(root)
    size = reconstructor.size_of(target)
    if size is None:
        raise NotFoundError(f"no tree known for root {to_hex(target)}", details={"root": root})
    return SizeResponse(root=to_hex(target), size=size)


@router.post("/reconstruct", response_model=ReconstructResponse)
def reconstruct(
    request: ReconstructRequest,
    reconstructor: CensusReconstructor = Depends(get_reconstructor),
) -> ReconstructResponse:
    expected = _parse_root(request.expected_root) if request.expected_root else None
    if request.from_events:
        tree = reconstructor.reconstruct_from_events(expected_root=expected)
    else:
        tree = reconstructor.reconstruct(expected_root=expected)
    logger.info(f"Reconstructed {to_hex(tree.root)} via {tree.path}")
    return ReconstructResponse(**tree.to_dict())


@router.get("/proof/{address}", response_model=ProofResponse)
def get_proof(
    address: str,
    reconstructor: CensusReconstructor = Depends(get_reconstructor),
) -> ProofResponse:
    account_id = _normalize(address)
    found = reconstructor.account_proof(account_id)
    if found is None:
        raise NotFoundError(f"account {account_id} is not in the census")
    account, proof = found
    wire = proof.to_dict()
    return ProofResponse(
        address=account.account_id,
        weight=str(account.weight),
        index=proof.index,
        root=wire["root"],
        leaf=wire["leaf"],
        siblings=wire["siblings"],
    )


@router.get("/accounts/{address}", response_model=AccountResponse)
def get_account(
    address: str,
    reconstructor: CensusReconstructor = Depends(get_reconstructor),
) -> AccountResponse:
    account_id = _normalize(address)
    account = reconstructor.account(account_id)
    if account is None:
        raise NotFoundError(f"account {account_id} is not in the census")
    return AccountResponse(
        address=account.account_id,
        weight=str(account.weight),
        slot_index=account.slot_index,
    )
