"""Domain data model for interactive segmentation sessions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import numpy as np
from numpy.typing import NDArray

from samoverlay_backend.enums import PointCategory

Color = tuple[int, int, int]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TypedPoint:
    """A prompt point in normalized display coordinates (0..1 on both axes)."""

    x: float
    y: float
    category: PointCategory
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)

    @property
    def coordinates(self) -> tuple[float, float]:
        return self.x, self.y


@dataclass
class Box:
    """A bounding box prompt being dragged or already finalized.

    Coordinates are normalized like ``TypedPoint``.
    """

    start: tuple[float, float]
    end: tuple[float, float]
    category: PointCategory = PointCategory.FOREGROUND
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)

    @property
    def midpoint(self) -> tuple[float, float]:
        return (self.start[0] + self.end[0]) / 2, (self.start[1] + self.end[1]) / 2

    @property
    def points(self) -> list[TypedPoint]:
        """Origin and end corner as prompt points, in that order."""
        return [
            TypedPoint(x=self.start[0], y=self.start[1], category=PointCategory.BOX_ORIGIN),
            TypedPoint(x=self.end[0], y=self.end[1], category=PointCategory.BOX_END),
        ]


@dataclass
class ImageEncoding:
    """Image encoder output, computed once per source image."""

    image_embed: Any
    high_res_feats: list[Any]
    original_size: tuple[int, int]  # (width, height)


@dataclass
class PromptEncoding:
    """Prompt encoder output for the complete point sequence."""

    sparse_embeddings: Any
    dense_embeddings: Any
    num_points: int


@dataclass
class CandidateMasks:
    """Mask decoder output: one score per mask channel."""

    scores: NDArray[np.float32]  # Shape: (C,)
    masks: NDArray[np.float32]  # Shape: (1, C, H, W), low resolution logits


@dataclass
class Segmentation:
    """A post-processed segmentation shown to the user as a tinted overlay."""

    mask: NDArray[np.uint8]  # Shape: (H, W), 0 or 255 at original resolution
    tint_color: Color
    title: str = ""
    first_appearance: int | None = None
    is_hidden: bool = False
    opacity: float = 0.6
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_now)

    @property
    def size(self) -> tuple[int, int]:
        """Mask size as (width, height)."""
        return self.mask.shape[1], self.mask.shape[0]
