# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Event listing, lookup and capture endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ..camera import ProvenanceCamera
from ..collaborators import Trigger
from ..exceptions import (
    ChainAppendFailure,
    DuplicateEvent,
    MalformedRecord,
    NotFound,
    StoreError,
    StoreTimeout,
)
from ..models.schemas import CaptureRequest, EventRecord
from ..storage.event_store import MAX_PAGE_SIZE
from .dependencies import get_camera

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["events"])


@router.get("/events", response_model=List[EventRecord])
def list_events(
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    camera: ProvenanceCamera = Depends(get_camera),
) -> List[EventRecord]:
    """
    List events newest first, with chain position attached.

    Args:
        limit: Page size
        offset: Records to skip
    """
    return camera.engine.list_events(limit=limit, offset=offset)


@router.get("/events/{event_id}", response_model=EventRecord)
def get_event(
    event_id: str = Path(..., min_length=1, max_length=36),
    camera: ProvenanceCamera = Depends(get_camera),
) -> EventRecord:
    """
    Get one event record.

    Raises:
        HTTPException: If event not found or its stored row is malformed
    """
    try:
        return camera.engine.get_event(event_id)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MalformedRecord as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "malformed_record", "event_id": e.event_id, "reason": e.reason},
        )


@router.post("/capture", response_model=EventRecord, status_code=status.HTTP_201_CREATED)
def capture(
    body: Optional[CaptureRequest] = Body(None),
    camera: ProvenanceCamera = Depends(get_camera),
) -> EventRecord:
    """
    Trigger a capture and record its provenance.

    Body is optional; the default is a manual capture with empty payload.
    """
    body = body or CaptureRequest()
    try:
        return camera.handle_trigger(Trigger(
            event_type=body.event_type,
            trigger_payload=body.trigger_payload,
        ))
    except DuplicateEvent as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ChainAppendFailure as e:
        logger.error(f"Capture left orphaned event {e.event_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "chain_append_failure", "event_id": e.event_id, "reason": e.reason},
        )
    except StoreTimeout as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except StoreError as e:
        logger.error(f"Capture failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
