"""Tint color assignment for new segmentations."""

from __future__ import annotations

import math
from collections.abc import Sequence

from samoverlay_backend.enums import ColorMetric
from samoverlay_backend.services.mask_postprocess import DEFAULT_TINT, Color

# Default tint first; the rest approximate the system palette
CANDIDATE_COLORS: list[Color] = [
    DEFAULT_TINT,
    (255, 59, 48),  # red
    (52, 199, 89),  # green
    (162, 132, 94),  # brown
    (88, 86, 214),  # indigo
    (50, 173, 230),  # cyan
    (255, 204, 0),  # yellow
    (175, 82, 222),  # purple
    (255, 149, 0),  # orange
    (48, 176, 199),  # teal
    (0, 199, 190),  # mint
    (255, 45, 85),  # pink
]


def color_distance(a: Color, b: Color) -> float:
    """Euclidean distance in RGB."""
    return math.dist(a, b)


def furthest_color(
    used: Sequence[Color],
    palette: Sequence[Color] = CANDIDATE_COLORS,
    metric: ColorMetric = ColorMetric.MIN,
) -> Color:
    """Pick the palette color that stands out most against the used colors.

    Unused palette entries are preferred; once every entry is in use the whole
    palette competes again. Ties go to the earlier palette entry.

    Args:
        used: Tint colors of existing segmentations.
        palette: Candidate colors, default tint first.
        metric: MIN maximizes the distance to the closest used color, SUM the
            total distance to all used colors.

    Returns:
        The chosen color; the first palette entry when nothing is used yet.
    """
    if not palette:
        raise ValueError("Palette must not be empty")
    if not used:
        return palette[0]

    used_set = {tuple(c) for c in used}
    candidates = [c for c in palette if c not in used_set] or list(palette)

    aggregate = min if metric == ColorMetric.MIN else sum

    best = candidates[0]
    best_score = -1.0
    for candidate in candidates:
        score = aggregate(color_distance(candidate, u) for u in used)
        if score > best_score:
            best, best_score = candidate, score
    return best
