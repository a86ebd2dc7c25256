"""
Verify Route

Offline check of an inclusion proof against a root.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.deps import get_hasher
from api.errors import InvalidRequestError
from api.models.requests import VerifyProofRequest
from api.models.responses import VerifyResponse
from census.crypto.hashing import HashFunction, parse_field_element, to_hex
from census.merkle.codec import pack_leaf
from census.merkle.proofs import verify_proof


logger = logging.getLogger(__name__)

router = APIRouter(tags=["verification"])


@router.post("/verify", response_model=VerifyResponse)
def verify(
    request: VerifyProofRequest,
    hasher: HashFunction = Depends(get_hasher),
) -> VerifyResponse:
    """
    Verify a proof.

    `valid=false` is a normal response; only malformed input is an error.
    """
    try:
        root = parse_field_element(request.root)
        siblings = [parse_field_element(s) for s in request.siblings]
        leaf = (
            parse_field_element(request.leaf)
            if request.leaf is not None
            else None
        )
    except ValueError as e:
        raise InvalidRequestError(f"invalid field element: {e}") from e

    if leaf is None:
        leaf = pack_leaf(request.address, request.weight)

    valid = verify_proof(root, leaf, siblings, hasher)
    logger.debug(f"Proof for root {to_hex(root)} valid={valid}")
    return VerifyResponse(valid=valid, root=to_hex(root), leaf=str(leaf), depth=len(siblings))
