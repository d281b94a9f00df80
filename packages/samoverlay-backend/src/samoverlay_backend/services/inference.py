"""Inference engine interface and error wrapping for its stages."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from samoverlay_backend.errors import DecodingFailedError, EncodingFailedError, ModelNotLoadedError, SegmentationError

if TYPE_CHECKING:
    from samoverlay_backend.models import CandidateMasks, ImageEncoding, PromptEncoding

logger = logging.getLogger(__name__)


@runtime_checkable
class InferenceEngine(Protocol):
    """Three-stage segmentation model: image encoder, prompt encoder, mask decoder.

    Calls may be slow and may raise arbitrary exceptions; callers wrap them.
    """

    @property
    def is_loaded(self) -> bool: ...

    def encode_image(self, image: Image.Image) -> ImageEncoding: ...

    def encode_prompt(self, coords: NDArray[np.float32], labels: NDArray[np.int32]) -> PromptEncoding: ...

    def decode_mask(self, image_encoding: ImageEncoding, prompt_encoding: PromptEncoding) -> CandidateMasks: ...


def encode_image(engine: InferenceEngine, image: Image.Image) -> ImageEncoding:
    """Run the image encoder.

    Raises:
        ModelNotLoadedError: If the engine has no model loaded.
        EncodingFailedError: If the engine call fails.
    """
    if not engine.is_loaded:
        raise ModelNotLoadedError()
    try:
        return engine.encode_image(image)
    except SegmentationError:
        raise
    except Exception as e:
        raise EncodingFailedError(f"Image encoding failed: {e}") from e


def decode_mask(
    engine: InferenceEngine, image_encoding: ImageEncoding, prompt_encoding: PromptEncoding
) -> CandidateMasks:
    """Run the mask decoder and check it produced scored masks.

    Raises:
        ModelNotLoadedError: If the engine has no model loaded.
        DecodingFailedError: If the engine call fails or returns no scores.
    """
    if not engine.is_loaded:
        raise ModelNotLoadedError()
    try:
        candidates = engine.decode_mask(image_encoding, prompt_encoding)
    except SegmentationError:
        raise
    except Exception as e:
        raise DecodingFailedError(f"Mask decoding failed: {e}") from e

    if np.asarray(candidates.scores).size == 0:
        raise DecodingFailedError("Mask decoder returned no scores")
    logger.debug(f"Decoded {np.asarray(candidates.scores).size} candidate masks")
    return candidates
