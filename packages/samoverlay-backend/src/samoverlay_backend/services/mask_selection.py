"""Selection of the best candidate mask from decoder output."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from samoverlay_backend.errors import DecodingFailedError


def best_mask_index(scores: ArrayLike) -> int:
    """Index of the highest score, first occurrence on ties.

    An empty score array selects channel 0: a decode without scores is treated
    as a degenerate single-channel output.
    """
    scores = np.asarray(scores, dtype=np.float32).ravel()
    if scores.size == 0:
        return 0
    return int(np.argmax(scores))


def select_best_mask(scores: ArrayLike, masks: NDArray[np.float32]) -> NDArray[np.float32]:
    """Return the (H, W) mask of the best scoring channel.

    Args:
        scores: Per-channel scores, shape (C,) or (1, C).
        masks: Decoder masks, shape (batch, C, H, W). Only batch 0 is read.

    Raises:
        DecodingFailedError: If masks are not 4-D or lack the selected channel.
    """
    masks = np.asarray(masks)
    if masks.ndim != 4 or masks.shape[0] == 0:
        raise DecodingFailedError(f"Expected mask tensor of shape (B, C, H, W), got {masks.shape}")

    index = best_mask_index(scores)
    if index >= masks.shape[1]:
        raise DecodingFailedError(f"Mask channel {index} out of range for {masks.shape[1]} channels")

    return masks[0, index]
