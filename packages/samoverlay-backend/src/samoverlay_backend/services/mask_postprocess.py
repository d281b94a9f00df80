"""Post-processing of low resolution decoder masks into tinted overlays.

The decoder emits logits at low resolution (256x256 for SAM2). Thresholding
them before upsampling gives staircase edges, so the mask is first rendered
into a grayscale image using its own [min, max] range, resized to the source
image size, and only then thresholded at the position of logit 0 inside that
range.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from samoverlay_backend.errors import ImageResizingFailedError
from samoverlay_backend.models import Color, Segmentation
from samoverlay_backend.services.coordinates import validate_size

logger = logging.getLogger(__name__)

DEFAULT_TINT: Color = (30, 144, 255)


@dataclass
class PostprocessedMask:
    """Binary mask at original resolution plus its tinted overlay."""

    alpha: NDArray[np.uint8]  # Shape: (H, W), 0 or 255
    overlay: Image.Image  # RGBA, same size as the original image
    threshold: float


def mask_range(mask: NDArray[np.floating]) -> tuple[float, float]:
    """Return (min, max) of a mask."""
    if mask.size == 0:
        raise ImageResizingFailedError("Mask is empty")
    return float(np.min(mask)), float(np.max(mask))


def mask_threshold(min_value: float, max_value: float) -> float:
    """Position of logit 0 within the [min, max] encoding window.

    Raises:
        ImageResizingFailedError: For a flat mask (max == min).
    """
    if max_value == min_value:
        raise ImageResizingFailedError(f"Mask is flat at {min_value}, nothing to segment")
    return -min_value / (max_value - min_value)


def render_grayscale(mask: NDArray[np.floating], min_value: float, max_value: float) -> Image.Image:
    """Render mask values into a float grayscale image windowed to [min, max]."""
    if max_value == min_value:
        raise ImageResizingFailedError(f"Mask is flat at {min_value}, nothing to segment")
    scaled = (np.asarray(mask, dtype=np.float32) - min_value) / (max_value - min_value)
    return Image.fromarray(scaled.astype(np.float32))


def resize_mask(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    """Bilinearly resize a grayscale mask image to (width, height)."""
    validate_size(size, "original_size")
    width, height = int(round(size[0])), int(round(size[1]))
    if width == 0 or height == 0:
        raise ImageResizingFailedError(f"Cannot resize mask to {size[0]}x{size[1]}")
    resized = image.resize((width, height), Image.Resampling.BILINEAR)
    if resized.size != (width, height):
        raise ImageResizingFailedError(f"Resize produced {resized.size}, expected {(width, height)}")
    return resized


def apply_threshold(image: Image.Image, threshold: float) -> NDArray[np.uint8]:
    """Binarize: 255 where the value is above the threshold, 0 elsewhere."""
    values = np.asarray(image, dtype=np.float32)
    return np.where(values > threshold, 255, 0).astype(np.uint8)


def mask_to_alpha(mask: NDArray[np.uint8]) -> NDArray[np.float32]:
    """Convert a grayscale mask into a white RGBA image whose alpha is the mask."""
    alpha = mask.astype(np.float32) / 255.0
    rgba = np.ones((*mask.shape, 4), dtype=np.float32)
    rgba[..., 3] = alpha
    return rgba


def tint_matrix(color: Color, opacity: float = 1.0) -> tuple[NDArray[np.float32], NDArray[np.float32]]:
    """Channel-mix matrix and bias that recolor a white alpha shape with ``color``.

    Each color channel becomes ``channel * color + alpha - 1``, which is the
    flat tint inside the shape and clips to 0 outside it.
    """
    r, g, b = (c / 255.0 for c in color)
    matrix = np.array(
        [
            [r, 0.0, 0.0, 1.0],
            [0.0, g, 0.0, 1.0],
            [0.0, 0.0, b, 1.0],
            [0.0, 0.0, 0.0, opacity],
        ],
        dtype=np.float32,
    )
    bias = np.array([-1.0, -1.0, -1.0, 0.0], dtype=np.float32)
    return matrix, bias


def apply_color_matrix(
    rgba: NDArray[np.float32], matrix: NDArray[np.float32], bias: NDArray[np.float32]
) -> NDArray[np.float32]:
    """Multiply every pixel by ``matrix``, add ``bias`` and clip to [0, 1]."""
    return np.clip(rgba @ matrix.T + bias, 0.0, 1.0)


def tint(rgba: NDArray[np.float32], color: Color = DEFAULT_TINT, opacity: float = 1.0) -> Image.Image:
    """Recolor an alpha shape into a flat, semi-transparent RGBA overlay."""
    matrix, bias = tint_matrix(color, opacity)
    tinted = apply_color_matrix(rgba, matrix, bias)
    pixels = np.rint(tinted * 255).astype(np.uint8)
    return Image.fromarray(pixels)


def render_overlay(mask: NDArray[np.uint8], color: Color = DEFAULT_TINT, opacity: float = 1.0) -> Image.Image:
    """Tinted RGBA overlay for a binary mask."""
    return tint(mask_to_alpha(mask), color, opacity)


def postprocess_mask(
    mask: NDArray[np.floating],
    original_size: tuple[int, int],
    color: Color = DEFAULT_TINT,
    opacity: float = 1.0,
) -> PostprocessedMask:
    """Turn a selected low resolution mask into a binary mask and tinted overlay.

    Args:
        mask: Selected decoder mask, shape (h, w).
        original_size: Source image (width, height).
        color: Tint color.
        opacity: Overlay alpha inside the mask, 0..1.

    Returns:
        PostprocessedMask at the original image resolution.

    Raises:
        InvalidDimensionsError: If original_size has a non-positive component.
        ImageResizingFailedError: If the mask is flat or any step yields no output.
    """
    validate_size(original_size, "original_size")

    min_value, max_value = mask_range(mask)
    threshold = mask_threshold(min_value, max_value)

    grayscale = render_grayscale(mask, min_value, max_value)
    resized = resize_mask(grayscale, original_size)
    binary = apply_threshold(resized, threshold)
    if binary.size == 0:
        raise ImageResizingFailedError("Thresholding produced an empty mask")

    overlay = render_overlay(binary, color, opacity)
    logger.debug(
        f"Post-processed mask {mask.shape} -> {overlay.size} "
        f"(range [{min_value:.3f}, {max_value:.3f}], threshold {threshold:.3f})"
    )
    return PostprocessedMask(alpha=binary, overlay=overlay, threshold=threshold)


def render_segmentation(segmentation: Segmentation) -> Image.Image:
    """Tinted RGBA overlay of a segmentation in its current color."""
    return render_overlay(segmentation.mask, segmentation.tint_color, segmentation.opacity)
