# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Event and chain verification endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ..camera import ProvenanceCamera
from ..exceptions import NotFound
from ..models.schemas import ChainStatus, ChainVerification, VerificationResult
from .dependencies import get_camera

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["verification"])


@router.post("/verify/{event_id}", response_model=VerificationResult)
def verify_event(
    event_id: str = Path(..., min_length=1, max_length=36),
    camera: ProvenanceCamera = Depends(get_camera),
) -> VerificationResult:
    """
    Re-verify one event's signature.

    An unsigned event returns valid=false, reason=unsigned (not an error).

    Raises:
        HTTPException: If event not found
    """
    try:
        return camera.engine.verify_event(event_id)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/provenance/verify-chain", response_model=ChainVerification)
def verify_chain(
    camera: ProvenanceCamera = Depends(get_camera),
) -> ChainVerification:
    """Walk the chain and return every integrity issue found."""
    return camera.engine.verify_chain()


@router.get("/provenance/status", response_model=ChainStatus)
def provenance_status(
    camera: ProvenanceCamera = Depends(get_camera),
) -> ChainStatus:
    """Chain validity plus signed/verified/orphaned counters."""
    return camera.engine.chain_status()
