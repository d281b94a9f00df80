"""Interactive segmentation session: gesture handling and forward pass orchestration.

A session owns the prompt points, boxes and segmentations for one source image.
All mutation happens on the event loop. Each completed gesture starts a forward
pass over the complete point sequence:

    image encoding (once per image) -> prompt encoding -> mask decoding
    -> best mask selection -> post-processing -> current segmentation

Overlapping passes are resolved by cancel-and-restart: a new gesture cancels
the pass in flight, and a pass only publishes its result if its sequence
number is still the latest one.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

from PIL import Image

from samoverlay_backend.config import settings
from samoverlay_backend.enums import ColorMetric, PipelineState, PointCategory, Tool
from samoverlay_backend.errors import (
    DecodingFailedError,
    EncodingFailedError,
    InvalidDimensionsError,
    SegmentationError,
)
from samoverlay_backend.models import Box, CandidateMasks, Color, ImageEncoding, Segmentation, TypedPoint
from samoverlay_backend.schemas import BoxResponse, PointResponse, SegmentationResponse, SessionSnapshot
from samoverlay_backend.services.colors import furthest_color
from samoverlay_backend.services.coordinates import Point, Size, from_ui_space, validate_size
from samoverlay_backend.services.inference import InferenceEngine, decode_mask, encode_image
from samoverlay_backend.services.mask_postprocess import PostprocessedMask, postprocess_mask
from samoverlay_backend.services.mask_selection import select_best_mask
from samoverlay_backend.services.model_loader import ModelLoader
from samoverlay_backend.services.prompts import encode_prompt, point_sequence

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SegmentationSession:
    """Interaction state and pipeline orchestration for one source image."""

    def __init__(
        self,
        engine: InferenceEngine,
        loader: ModelLoader,
        input_size: Size | None = None,
        opacity: float | None = None,
        color_metric: ColorMetric | None = None,
        retries: int | None = None,
        retry_backoff: float | None = None,
    ) -> None:
        self.id = uuid.uuid4()
        self._engine = engine
        self._loader = loader
        self._input_size = input_size or settings.model_input_size
        self._opacity = settings.overlay_opacity if opacity is None else opacity
        self._color_metric = color_metric or settings.color_metric
        self._retries = settings.inference_retries if retries is None else retries
        self._retry_backoff = settings.inference_retry_backoff if retry_backoff is None else retry_backoff

        self._image: Image.Image | None = None
        self._display_size: Size | None = None
        self._image_encoding: ImageEncoding | None = None
        self._image_encoding_task: asyncio.Task | None = None
        self._prompt_encoding = None

        self.tool = Tool.POINT
        self.category = PointCategory.FOREGROUND
        self.points: list[TypedPoint] = []
        self.boxes: list[Box] = []
        self.current_box: Box | None = None
        self.segmentations: list[Segmentation] = []
        self.current_segmentation: Segmentation | None = None

        self.state = PipelineState.IDLE
        self.last_error: SegmentationError | None = None
        self.interaction_step = 0

        self._sequence = 0
        self._pass_task: asyncio.Task | None = None

    # Image

    @property
    def image(self) -> Image.Image | None:
        return self._image

    @property
    def original_size(self) -> tuple[int, int] | None:
        return self._image.size if self._image is not None else None

    @property
    def display_size(self) -> Size | None:
        return self._display_size

    @property
    def image_encoding(self) -> ImageEncoding | None:
        return self._image_encoding

    @property
    def prompt_encoding(self):
        return self._prompt_encoding

    def set_image(self, image: Image.Image, display_size: Size | None = None) -> None:
        """Start over with a new source image.

        Invalidates the image encoding and drops all prompts and segmentations.
        The image is encoded lazily by the first forward pass.
        """
        size = display_size or image.size
        validate_size(size, "display_size")
        validate_size(image.size, "image size")

        self._cancel_pass()
        if self._image_encoding_task is not None:
            self._image_encoding_task.cancel()

        self._image = image.convert("RGB")
        self._display_size = size
        self._image_encoding = None
        self._image_encoding_task = None
        self._prompt_encoding = None
        self.points.clear()
        self.boxes.clear()
        self.current_box = None
        self.segmentations.clear()
        self.current_segmentation = None
        self.last_error = None
        self.state = PipelineState.IDLE
        logger.info(f"Session {self.id}: new image {image.size[0]}x{image.size[1]}, display {size[0]}x{size[1]}")

    def set_display_size(self, size: Size) -> None:
        """Record the displayed frame size; stored points are normalized and unaffected."""
        validate_size(size, "display_size")
        self._display_size = size

    # Tools

    def select_tool(self, tool: Tool) -> None:
        self.tool = tool
        self.current_box = None

    def select_category(self, category: PointCategory) -> None:
        self.category = category

    def handle_tap(self, location: Point) -> TypedPoint | None:
        """Place a point with the selected category when the point tool is active."""
        if self.tool != Tool.POINT:
            return None
        return self.place_point(location, self.category)

    def handle_drag(self, start: Point, location: Point) -> Box | None:
        """Begin or update the current box when the box tool is active."""
        if self.tool != Tool.BOUNDING_BOX:
            return None
        if self.current_box is None:
            self.begin_box(start)
        return self.drag_box(location)

    def handle_drag_end(self) -> Box | None:
        if self.tool != Tool.BOUNDING_BOX:
            return None
        return self.finalize_box()

    # Gestures

    def _normalize(self, location: Point) -> Point:
        if self._display_size is None:
            raise InvalidDimensionsError("No display size, load an image first")
        return from_ui_space(location, self._display_size)

    def place_point(self, location: Point, category: PointCategory | None = None) -> TypedPoint:
        """Add a point at a displayed-frame pixel position and start a forward pass."""
        x, y = self._normalize(location)
        point = TypedPoint(x=x, y=y, category=self.category if category is None else category)
        self.points.append(point)
        self._prompts_changed()
        return point

    def begin_box(self, location: Point, category: PointCategory | None = None) -> Box:
        start = self._normalize(location)
        self.current_box = Box(start=start, end=start, category=self.category if category is None else category)
        return self.current_box

    def drag_box(self, location: Point) -> Box | None:
        if self.current_box is None:
            return None
        self.current_box.end = self._normalize(location)
        return self.current_box

    def finalize_box(self) -> Box | None:
        """Append the dragged box to the box list and start a forward pass."""
        box = self.current_box
        if box is None:
            return None
        self.boxes.append(box)
        self.current_box = None
        self._prompts_changed()
        return box

    def add_box(self, start: Point, end: Point, category: PointCategory | None = None) -> Box:
        """Begin, drag and finalize a box in one call."""
        self.begin_box(start, category)
        self.drag_box(end)
        return self.finalize_box()

    def remove_point(self, point_id: uuid.UUID) -> bool:
        for index, point in enumerate(self.points):
            if point.id == point_id:
                del self.points[index]
                self._prompts_changed()
                return True
        return False

    def remove_box(self, box_id: uuid.UUID) -> bool:
        for index, box in enumerate(self.boxes):
            if box.id == box_id:
                del self.boxes[index]
                self._prompts_changed()
                return True
        return False

    def clear_prompts(self) -> None:
        """Drop all points and boxes along with the uncommitted segmentation."""
        self._cancel_pass()
        self.points.clear()
        self.boxes.clear()
        self.current_box = None
        self.current_segmentation = None
        self._prompt_encoding = None
        self.state = PipelineState.IDLE

    # Segmentations

    def commit_segmentation(self) -> Segmentation | None:
        """Keep the current segmentation and clear prompts for the next object."""
        segmentation = self.current_segmentation
        if segmentation is None:
            return None
        self.segmentations.append(segmentation)
        self.clear_prompts()
        logger.info(f"Session {self.id}: committed segmentation '{segmentation.title}'")
        return segmentation

    def get_segmentation(self, segmentation_id: uuid.UUID) -> Segmentation | None:
        return next((s for s in self.segmentations if s.id == segmentation_id), None)

    def update_segmentation(
        self,
        segmentation_id: uuid.UUID,
        title: str | None = None,
        is_hidden: bool | None = None,
        tint_color: Color | None = None,
    ) -> Segmentation | None:
        segmentation = self.get_segmentation(segmentation_id)
        if segmentation is None:
            return None
        if title is not None:
            segmentation.title = title
        if is_hidden is not None:
            segmentation.is_hidden = is_hidden
        if tint_color is not None:
            segmentation.tint_color = tuple(tint_color)
        return segmentation

    def delete_segmentation(self, segmentation_id: uuid.UUID) -> bool:
        segmentation = self.get_segmentation(segmentation_id)
        if segmentation is None:
            return False
        self.segmentations.remove(segmentation)
        return True

    # Forward pass

    def _prompts_changed(self) -> None:
        self.interaction_step += 1
        if self.points or self.boxes:
            self._trigger_forward_pass()
        else:
            self._cancel_pass()
            self.current_segmentation = None
            self._prompt_encoding = None
            self.state = PipelineState.IDLE

    def _cancel_pass(self) -> None:
        """Invalidate the pass in flight; its result will never be published."""
        self._sequence += 1
        if self._pass_task is not None and not self._pass_task.done():
            self._pass_task.cancel()
            logger.debug(f"Session {self.id}: cancelled superseded forward pass")

    def _trigger_forward_pass(self) -> None:
        prompts = point_sequence(self.boxes, self.points)
        self._cancel_pass()
        sequence = self._sequence
        self._pass_task = asyncio.get_running_loop().create_task(
            self._forward_pass(sequence, prompts, self.interaction_step)
        )

    def _set_state(self, sequence: int, state: PipelineState) -> None:
        if sequence == self._sequence:
            self.state = state

    async def _run_with_retry(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking engine call in a worker thread, retrying transient failures."""
        attempt = 0
        while True:
            try:
                return await asyncio.to_thread(func, *args)
            except (EncodingFailedError, DecodingFailedError) as e:
                if attempt >= self._retries:
                    raise
                delay = self._retry_backoff * 2**attempt
                attempt += 1
                logger.warning(f"{e}; retrying in {delay:.2f}s (attempt {attempt}/{self._retries})")
                await asyncio.sleep(delay)

    async def _ensure_image_encoding(self, sequence: int) -> ImageEncoding:
        if self._image_encoding is not None:
            return self._image_encoding
        if self._image is None:
            raise EncodingFailedError("No image loaded")

        self._set_state(sequence, PipelineState.ENCODING)
        task = self._image_encoding_task
        if task is None:
            task = asyncio.get_running_loop().create_task(self._run_with_retry(encode_image, self._engine, self._image))
            task.add_done_callback(self._image_encoding_done)
            self._image_encoding_task = task

        # Shielded so a superseded pass does not abort an encoding the next pass reuses
        encoding = await asyncio.shield(task)

        if self._image_encoding_task is task:
            self._image_encoding = encoding
        return encoding

    def _image_encoding_done(self, task: asyncio.Task) -> None:
        """Forget a failed or cancelled encoding, whether or not a pass awaited it."""
        if not task.cancelled() and task.exception() is None:
            return
        if self._image_encoding_task is task:
            self._image_encoding_task = None
            logger.debug(f"Session {self.id}: dropped failed image encoding")

    def _postprocess(self, candidates: CandidateMasks, color: Color) -> PostprocessedMask:
        mask = select_best_mask(candidates.scores, candidates.masks)
        return postprocess_mask(mask, self.original_size or (0, 0), color, self._opacity)

    async def _forward_pass(self, sequence: int, prompts: list[TypedPoint], step: int) -> None:
        try:
            self._loader.require_ready()
            image_encoding = await self._ensure_image_encoding(sequence)

            self._set_state(sequence, PipelineState.AWAITING_PROMPT)
            prompt_encoding = await self._run_with_retry(
                encode_prompt, self._engine, prompts, self._display_size, self._input_size
            )

            self._set_state(sequence, PipelineState.DECODING)
            candidates = await self._run_with_retry(decode_mask, self._engine, image_encoding, prompt_encoding)

            color = furthest_color([s.tint_color for s in self.segmentations], metric=self._color_metric)
            processed = await asyncio.to_thread(self._postprocess, candidates, color)
        except asyncio.CancelledError:
            logger.debug(f"Session {self.id}: forward pass {sequence} cancelled")
            raise
        except SegmentationError as e:
            self._fail(sequence, e)
            return
        except Exception as e:
            logger.exception(f"Session {self.id}: unexpected error in forward pass {sequence}")
            self._fail(sequence, SegmentationError(str(e)))
            return

        if sequence != self._sequence:
            logger.debug(f"Session {self.id}: discarding stale forward pass {sequence}")
            return

        self._prompt_encoding = prompt_encoding
        self.current_segmentation = Segmentation(
            mask=processed.alpha,
            tint_color=color,
            title=f"Untitled {len(self.segmentations) + 1}",
            first_appearance=step,
            opacity=self._opacity,
        )
        self.last_error = None
        self.state = PipelineState.IDLE
        logger.info(f"Session {self.id}: forward pass {sequence} produced a mask from {len(prompts)} points")

    def _fail(self, sequence: int, error: SegmentationError) -> None:
        if sequence != self._sequence:
            return
        logger.warning(f"Session {self.id}: forward pass {sequence} failed: {error}")
        self.last_error = error
        self.state = PipelineState.IDLE

    async def wait_idle(self) -> None:
        """Wait until no forward pass is in flight, following restarts."""
        while self._pass_task is not None and not self._pass_task.done():
            await asyncio.wait({self._pass_task})

    def close(self) -> None:
        self._cancel_pass()
        if self._image_encoding_task is not None and not self._image_encoding_task.done():
            self._image_encoding_task.cancel()

    # Presentation

    def snapshot(self) -> SessionSnapshot:
        """Read-only view of the session for the presentation layer."""
        original = self.original_size
        display = self._display_size
        return SessionSnapshot(
            id=self.id,
            state=self.state,
            image_width=original[0] if original else None,
            image_height=original[1] if original else None,
            display_width=display[0] if display else None,
            display_height=display[1] if display else None,
            tool=self.tool,
            category=self.category,
            interaction_step=self.interaction_step,
            points=[PointResponse.model_validate(p) for p in self.points],
            boxes=[_box_response(b) for b in self.boxes],
            current_box=_box_response(self.current_box) if self.current_box else None,
            segmentations=[SegmentationResponse.model_validate(s) for s in self.segmentations],
            current_segmentation=(
                SegmentationResponse.model_validate(self.current_segmentation) if self.current_segmentation else None
            ),
            error=str(self.last_error) if self.last_error else None,
        )


def _box_response(box: Box) -> BoxResponse:
    return BoxResponse(
        id=box.id,
        start_x=box.start[0],
        start_y=box.start[1],
        end_x=box.end[0],
        end_y=box.end[1],
        category=box.category,
        created_at=box.created_at,
    )


class SessionStore:
    """In-memory registry of sessions (single-process tool)."""

    def __init__(self) -> None:
        self._sessions: dict[uuid.UUID, SegmentationSession] = {}

    def add(self, session: SegmentationSession) -> SegmentationSession:
        self._sessions[session.id] = session
        return session

    def get(self, session_id: uuid.UUID) -> SegmentationSession | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: uuid.UUID) -> SegmentationSession | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
        return session

    def list(self) -> list[SegmentationSession]:
        return list(self._sessions.values())

    def clear(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
