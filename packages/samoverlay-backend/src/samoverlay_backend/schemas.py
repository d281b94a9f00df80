"""Pydantic schemas for API request/response models and session snapshots."""

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from samoverlay_backend.enums import PipelineState, PointCategory, Tool

ColorChannel = Annotated[int, Field(ge=0, le=255)]


class PointCreate(BaseModel):
    """Schema for placing a point, in displayed-frame pixels."""

    x: float
    y: float
    category: PointCategory = PointCategory.FOREGROUND


class BoxCreate(BaseModel):
    """Schema for a finalized box drag, in displayed-frame pixels."""

    start_x: float
    start_y: float
    end_x: float
    end_y: float
    category: PointCategory = PointCategory.FOREGROUND


class DisplaySizeUpdate(BaseModel):
    """Schema for the size of the image frame as displayed."""

    width: float = Field(gt=0)
    height: float = Field(gt=0)


class SegmentationUpdate(BaseModel):
    """Schema for updating a committed segmentation."""

    title: str | None = None
    is_hidden: bool | None = None
    tint_color: tuple[ColorChannel, ColorChannel, ColorChannel] | None = None


class PointResponse(BaseModel):
    """Schema for a prompt point, in normalized coordinates."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    x: float
    y: float
    category: PointCategory
    created_at: datetime


class BoxResponse(BaseModel):
    """Schema for a box prompt, in normalized coordinates."""

    id: uuid.UUID
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    category: PointCategory
    created_at: datetime


class SegmentationResponse(BaseModel):
    """Schema for segmentation metadata; the overlay itself is served as PNG."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    tint_color: tuple[int, int, int]
    is_hidden: bool
    first_appearance: int | None
    created_at: datetime


class SessionSnapshot(BaseModel):
    """Read-only view of a segmentation session for the presentation layer."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    state: PipelineState
    image_width: int | None = None
    image_height: int | None = None
    display_width: float | None = None
    display_height: float | None = None
    tool: Tool
    category: PointCategory
    interaction_step: int
    points: list[PointResponse]
    boxes: list[BoxResponse]
    current_box: BoxResponse | None = None
    segmentations: list[SegmentationResponse]
    current_segmentation: SegmentationResponse | None = None
    error: str | None = None


class SessionList(BaseModel):
    """Schema for list of sessions response."""

    sessions: list[SessionSnapshot]
    total: int


class HealthResponse(BaseModel):
    """Schema for the health check, including model readiness."""

    status: str
    model_ready: bool
    model_failed: bool
    initialization_time: float | None = None
