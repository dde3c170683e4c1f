# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from ..camera import ProvenanceCamera


def get_camera(request: Request) -> ProvenanceCamera:
    """Camera application stored on app.state at startup."""
    camera = getattr(request.app.state, "camera", None)
    if camera is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Provenance camera not initialized",
        )
    return camera
