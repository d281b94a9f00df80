"""Shared helpers for route handlers."""

import uuid

from fastapi import HTTPException

from samoverlay_backend.models import Segmentation
from samoverlay_backend.services.session import SegmentationSession, SessionStore


def get_session_or_404(store: SessionStore, session_id: uuid.UUID) -> SegmentationSession:
    """Get a session by ID or raise 404.

    Args:
        store: Session store.
        session_id: UUID of the session.

    Returns:
        SegmentationSession instance.

    Raises:
        HTTPException: 404 if session not found.
    """
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def get_segmentation_or_404(session: SegmentationSession, segmentation_id: uuid.UUID) -> Segmentation:
    """Get a committed segmentation by ID or raise 404."""
    segmentation = session.get_segmentation(segmentation_id)
    if segmentation is None:
        raise HTTPException(status_code=404, detail="Segmentation not found")
    return segmentation
