"""Errors raised by the segmentation pipeline."""


class SegmentationError(Exception):
    """Base class for recoverable pipeline errors."""


class ModelNotLoadedError(SegmentationError):
    """Inference was requested before the models finished loading, or loading failed."""

    def __init__(self, message: str = "SAM2 model not loaded") -> None:
        super().__init__(message)


class EncodingFailedError(SegmentationError):
    """The image or prompt encoder failed."""


class DecodingFailedError(SegmentationError):
    """The mask decoder failed or returned unusable output."""


class InvalidDimensionsError(SegmentationError, ValueError):
    """A size used for coordinate or image transforms has a non-positive component."""


class ImageResizingFailedError(SegmentationError):
    """Mask post-processing produced no usable output."""
