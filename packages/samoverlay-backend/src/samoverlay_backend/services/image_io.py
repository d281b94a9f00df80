"""Image loading, PNG encoding and overlay compositing."""

from __future__ import annotations

from collections.abc import Iterable
from io import BytesIO
from pathlib import Path

from PIL import Image


def load_image(source: str | Path | bytes) -> Image.Image:
    """Load an image from a file path or raw bytes as RGB.

    Args:
        source: File path or encoded image bytes.

    Returns:
        RGB PIL image.
    """
    if isinstance(source, bytes):
        image = Image.open(BytesIO(source))
    else:
        image = Image.open(source)
    image.load()
    return image.convert("RGB")


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG bytes."""
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def save_png(image: Image.Image, path: str | Path) -> None:
    """Write an image to ``path`` as PNG."""
    image.save(path, format="PNG")


def composite_overlays(original: Image.Image, overlays: Iterable[Image.Image]) -> Image.Image:
    """Alpha-composite RGBA overlays onto the original image, first overlay at the bottom.

    Args:
        original: Source image.
        overlays: RGBA overlays, resized to the source size when they differ.

    Returns:
        RGB image with all overlays applied.
    """
    result = original.copy().convert("RGBA")

    for overlay in overlays:
        layer = overlay.convert("RGBA")
        if layer.size != result.size:
            layer = layer.resize(result.size, Image.Resampling.NEAREST)
        result = Image.alpha_composite(result, layer)

    return result.convert("RGB")
