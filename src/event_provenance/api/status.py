# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Health and status endpoints."""

from fastapi import APIRouter, Depends

from ..camera import ProvenanceCamera
from ..models.schemas import SystemStatus
from .dependencies import get_camera

router = APIRouter(tags=["status"])


@router.get("/health")
def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/api/status", response_model=SystemStatus)
def get_status(
    camera: ProvenanceCamera = Depends(get_camera),
) -> SystemStatus:
    """Signer, clock and chain cursor status."""
    return camera.status()
