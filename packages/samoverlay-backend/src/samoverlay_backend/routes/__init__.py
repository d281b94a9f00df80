"""API routes."""

from samoverlay_backend.routes.segmentations import router as segmentations_router
from samoverlay_backend.routes.sessions import router as sessions_router

__all__ = [
    "segmentations_router",
    "sessions_router",
]
