"""Packaging of prompt points into prompt encoder inputs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from samoverlay_backend.errors import EncodingFailedError, ModelNotLoadedError, SegmentationError
from samoverlay_backend.models import Box, PromptEncoding, TypedPoint
from samoverlay_backend.services.coordinates import DEFAULT_INPUT_SIZE, Size, to_model_space
from samoverlay_backend.services.inference import InferenceEngine

logger = logging.getLogger(__name__)


@dataclass
class PromptInputs:
    """Parallel coordinate and label arrays for the prompt encoder."""

    coords: NDArray[np.float32]  # Shape: (1, N, 2), model space
    labels: NDArray[np.int32]  # Shape: (1, N)

    @property
    def num_points(self) -> int:
        return self.labels.shape[1]


def point_sequence(boxes: Sequence[Box], points: Sequence[TypedPoint]) -> list[TypedPoint]:
    """Flatten boxes and free points into the order the encoder sees them.

    Box corners come first (box order, origin before end), then free points in
    the order they were placed.
    """
    return [p for box in boxes for p in box.points] + list(points)


def build_prompt_inputs(
    points: Sequence[TypedPoint],
    orig_size: Size,
    input_size: Size = DEFAULT_INPUT_SIZE,
) -> PromptInputs:
    """Transform points to model space and pair them with category codes.

    Args:
        points: Normalized prompt points in encoder order.
        orig_size: Displayed frame (width, height) the points were placed on.
        input_size: Model input (width, height).

    Returns:
        PromptInputs with coords of shape (1, N, 2) and labels of shape (1, N).
    """
    transformed = to_model_space([p.coordinates for p in points], orig_size, normalize=False, input_size=input_size)

    coords = np.array(transformed, dtype=np.float32).reshape(1, len(points), 2)
    labels = np.array([int(p.category) for p in points], dtype=np.int32).reshape(1, len(points))
    return PromptInputs(coords=coords, labels=labels)


def encode_prompt(
    engine: InferenceEngine,
    points: Sequence[TypedPoint],
    orig_size: Size,
    input_size: Size = DEFAULT_INPUT_SIZE,
) -> PromptEncoding:
    """Run the prompt encoder over the complete point sequence.

    Raises:
        ModelNotLoadedError: If the engine has no model loaded.
        EncodingFailedError: If the engine call fails.
    """
    if not engine.is_loaded:
        raise ModelNotLoadedError()

    inputs = build_prompt_inputs(points, orig_size, input_size)
    try:
        encoding = engine.encode_prompt(inputs.coords, inputs.labels)
    except SegmentationError:
        raise
    except Exception as e:
        raise EncodingFailedError(f"Prompt encoding failed: {e}") from e

    logger.debug(f"Encoded prompt with {inputs.num_points} points")
    return encoding
