"""Session endpoints: image upload, prompt gestures and composited output."""

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from PIL import UnidentifiedImageError

from samoverlay_backend.dependencies import get_model_loader, get_sam2_service, get_session_store
from samoverlay_backend.errors import InvalidDimensionsError
from samoverlay_backend.schemas import BoxCreate, DisplaySizeUpdate, PointCreate, SessionList, SessionSnapshot
from samoverlay_backend.services import (
    ModelLoader,
    SAM2Service,
    SegmentationSession,
    SessionStore,
    composite_overlays,
    encode_png,
    load_image,
    render_segmentation,
)
from samoverlay_backend.utils import get_session_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionSnapshot, status_code=201)
async def create_session(
    file: UploadFile = File(...),
    display_width: float | None = Form(None),
    display_height: float | None = Form(None),
    store: SessionStore = Depends(get_session_store),
    engine: SAM2Service = Depends(get_sam2_service),
    loader: ModelLoader = Depends(get_model_loader),
) -> SessionSnapshot:
    """Upload a source image and open a segmentation session for it."""
    # Validate file type
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")

    try:
        image = load_image(content)
    except (UnidentifiedImageError, OSError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to read image: {e}") from None

    display_size = (display_width, display_height) if display_width and display_height else None

    session = SegmentationSession(engine, loader)
    try:
        session.set_image(image, display_size)
    except InvalidDimensionsError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None

    store.add(session)
    logger.info(f"Opened session {session.id} for {file.filename}")
    return session.snapshot()


@router.get("", response_model=SessionList)
async def list_sessions(store: SessionStore = Depends(get_session_store)) -> dict:
    """List all open sessions."""
    sessions = [session.snapshot() for session in store.list()]
    return {"sessions": sessions, "total": len(sessions)}


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_session(
    session_id: uuid.UUID,
    wait: bool = False,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    """Get a session snapshot, optionally after the pending forward pass finished."""
    session = get_session_or_404(store, session_id)
    if wait:
        await session.wait_idle()
    return session.snapshot()


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: uuid.UUID, store: SessionStore = Depends(get_session_store)) -> None:
    """Close a session and drop its state."""
    get_session_or_404(store, session_id)
    store.remove(session_id)


@router.put("/{session_id}/display-size", response_model=SessionSnapshot)
async def update_display_size(
    session_id: uuid.UUID,
    update: DisplaySizeUpdate,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    """Record a new displayed frame size for interpreting gesture coordinates."""
    session = get_session_or_404(store, session_id)
    session.set_display_size((update.width, update.height))
    return session.snapshot()


@router.post("/{session_id}/points", response_model=SessionSnapshot, status_code=201)
async def place_point(
    session_id: uuid.UUID,
    point: PointCreate,
    wait: bool = True,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    """Place a point in displayed-frame pixels and run a forward pass."""
    session = get_session_or_404(store, session_id)
    try:
        session.place_point((point.x, point.y), point.category)
    except InvalidDimensionsError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None

    if wait:
        await session.wait_idle()
    return session.snapshot()


@router.delete("/{session_id}/points/{point_id}", response_model=SessionSnapshot)
async def remove_point(
    session_id: uuid.UUID,
    point_id: uuid.UUID,
    wait: bool = True,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    """Remove a point and rerun the forward pass over the remaining prompts."""
    session = get_session_or_404(store, session_id)
    if not session.remove_point(point_id):
        raise HTTPException(status_code=404, detail="Point not found")

    if wait:
        await session.wait_idle()
    return session.snapshot()


@router.post("/{session_id}/boxes", response_model=SessionSnapshot, status_code=201)
async def add_box(
    session_id: uuid.UUID,
    box: BoxCreate,
    wait: bool = True,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    """Add a finalized box drag in displayed-frame pixels and run a forward pass."""
    session = get_session_or_404(store, session_id)
    try:
        session.add_box((box.start_x, box.start_y), (box.end_x, box.end_y), box.category)
    except InvalidDimensionsError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None

    if wait:
        await session.wait_idle()
    return session.snapshot()


@router.delete("/{session_id}/boxes/{box_id}", response_model=SessionSnapshot)
async def remove_box(
    session_id: uuid.UUID,
    box_id: uuid.UUID,
    wait: bool = True,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    """Remove a box and rerun the forward pass over the remaining prompts."""
    session = get_session_or_404(store, session_id)
    if not session.remove_box(box_id):
        raise HTTPException(status_code=404, detail="Box not found")

    if wait:
        await session.wait_idle()
    return session.snapshot()


@router.delete("/{session_id}/prompts", response_model=SessionSnapshot)
async def clear_prompts(session_id: uuid.UUID, store: SessionStore = Depends(get_session_store)) -> SessionSnapshot:
    """Remove all points and boxes and the uncommitted segmentation."""
    session = get_session_or_404(store, session_id)
    session.clear_prompts()
    return session.snapshot()


@router.get("/{session_id}/current/overlay.png")
async def get_current_overlay(session_id: uuid.UUID, store: SessionStore = Depends(get_session_store)) -> Response:
    """Get the overlay of the latest, uncommitted segmentation."""
    session = get_session_or_404(store, session_id)
    if session.current_segmentation is None:
        raise HTTPException(status_code=404, detail="No current segmentation")

    return Response(content=encode_png(render_segmentation(session.current_segmentation)), media_type="image/png")


@router.get("/{session_id}/composite.png")
async def get_composite(session_id: uuid.UUID, store: SessionStore = Depends(get_session_store)) -> Response:
    """Get the source image with all visible segmentations composited on top."""
    session = get_session_or_404(store, session_id)
    if session.image is None:
        raise HTTPException(status_code=404, detail="Session has no image")

    # Earlier segmentations draw on top, the current one above all
    layers = list(reversed([s for s in session.segmentations if not s.is_hidden]))
    if session.current_segmentation is not None:
        layers.append(session.current_segmentation)

    composite = composite_overlays(session.image, (render_segmentation(s) for s in layers))
    return Response(content=encode_png(composite), media_type="image/png")
