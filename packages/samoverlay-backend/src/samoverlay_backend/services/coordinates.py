"""Coordinate transforms between UI, normalized and model input space.

Three coordinate systems are involved:
- UI space: pixels of the image frame as currently displayed.
- Normalized space: (0..1, 0..1) relative to the displayed frame. Prompt points
  are stored this way so they survive window resizes.
- Model space: pixels of the fixed-size model input (1024x1024 by default).
"""

from __future__ import annotations

from collections.abc import Iterable

from samoverlay_backend.errors import InvalidDimensionsError

Point = tuple[float, float]
Size = tuple[float, float]

DEFAULT_INPUT_SIZE: Size = (1024, 1024)


def validate_size(size: Size, name: str = "size") -> None:
    """Raise InvalidDimensionsError unless both components are positive."""
    width, height = size
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(f"{name} must be positive, got {width}x{height}")


def to_model_space(
    points: Iterable[Point],
    orig_size: Size,
    normalize: bool = False,
    input_size: Size = DEFAULT_INPUT_SIZE,
) -> list[Point]:
    """Scale points into model input coordinates.

    Args:
        points: Points to transform. Already normalized unless ``normalize`` is set.
        orig_size: (width, height) the points are expressed in when ``normalize`` is set.
        normalize: Divide by ``orig_size`` before scaling.
        input_size: Model input (width, height).

    Returns:
        Points in model space.

    Raises:
        InvalidDimensionsError: If any size has a non-positive component.
    """
    validate_size(orig_size, "orig_size")
    validate_size(input_size, "input_size")
    in_w, in_h = input_size

    if not normalize:
        return [(x * in_w, y * in_h) for x, y in points]

    w, h = orig_size
    return [(x / w * in_w, y / h * in_h) for x, y in points]


def from_model_space(
    points: Iterable[Point],
    orig_size: Size,
    normalize: bool = False,
    input_size: Size = DEFAULT_INPUT_SIZE,
) -> list[Point]:
    """Inverse of ``to_model_space`` with the same arguments."""
    validate_size(orig_size, "orig_size")
    validate_size(input_size, "input_size")
    in_w, in_h = input_size

    if not normalize:
        return [(x / in_w, y / in_h) for x, y in points]

    w, h = orig_size
    return [(x / in_w * w, y / in_h * h) for x, y in points]


def from_ui_space(point: Point, frame_size: Size) -> Point:
    """Convert a displayed-frame pixel position into normalized coordinates."""
    validate_size(frame_size, "frame_size")
    return point[0] / frame_size[0], point[1] / frame_size[1]


def to_ui_space(point: Point, frame_size: Size) -> Point:
    """Convert normalized coordinates into a displayed-frame pixel position."""
    validate_size(frame_size, "frame_size")
    return point[0] * frame_size[0], point[1] * frame_size[1]
