"""Segmentation endpoints: commit, edit, delete and overlay images."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from samoverlay_backend.dependencies import get_session_store
from samoverlay_backend.schemas import SegmentationResponse, SegmentationUpdate
from samoverlay_backend.services import SessionStore, encode_png, render_segmentation
from samoverlay_backend.utils import get_segmentation_or_404, get_session_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions/{session_id}/segmentations", tags=["segmentations"])


@router.post("", response_model=SegmentationResponse, status_code=201)
async def commit_segmentation(
    session_id: uuid.UUID,
    store: SessionStore = Depends(get_session_store),
) -> SegmentationResponse:
    """Keep the current segmentation and clear prompts for the next object."""
    session = get_session_or_404(store, session_id)
    await session.wait_idle()

    segmentation = session.commit_segmentation()
    if segmentation is None:
        raise HTTPException(status_code=409, detail="No current segmentation to commit")
    return SegmentationResponse.model_validate(segmentation)


@router.get("", response_model=list[SegmentationResponse])
async def list_segmentations(
    session_id: uuid.UUID,
    store: SessionStore = Depends(get_session_store),
) -> list[SegmentationResponse]:
    """List committed segmentations in creation order."""
    session = get_session_or_404(store, session_id)
    return [SegmentationResponse.model_validate(s) for s in session.segmentations]


@router.patch("/{segmentation_id}", response_model=SegmentationResponse)
async def update_segmentation(
    session_id: uuid.UUID,
    segmentation_id: uuid.UUID,
    update: SegmentationUpdate,
    store: SessionStore = Depends(get_session_store),
) -> SegmentationResponse:
    """Rename, hide/show or recolor a segmentation."""
    session = get_session_or_404(store, session_id)
    get_segmentation_or_404(session, segmentation_id)

    segmentation = session.update_segmentation(
        segmentation_id,
        title=update.title,
        is_hidden=update.is_hidden,
        tint_color=update.tint_color,
    )
    return SegmentationResponse.model_validate(segmentation)


@router.delete("/{segmentation_id}", status_code=204)
async def delete_segmentation(
    session_id: uuid.UUID,
    segmentation_id: uuid.UUID,
    store: SessionStore = Depends(get_session_store),
) -> None:
    """Delete a committed segmentation."""
    session = get_session_or_404(store, session_id)
    get_segmentation_or_404(session, segmentation_id)
    session.delete_segmentation(segmentation_id)


@router.get("/{segmentation_id}/overlay.png")
async def get_overlay(
    session_id: uuid.UUID,
    segmentation_id: uuid.UUID,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Get the tinted RGBA overlay of a segmentation."""
    session = get_session_or_404(store, session_id)
    segmentation = get_segmentation_or_404(session, segmentation_id)
    return Response(content=encode_png(render_segmentation(segmentation)), media_type="image/png")
