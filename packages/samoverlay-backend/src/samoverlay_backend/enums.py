"""Shared enums for the application."""

import enum


class PointCategory(enum.IntEnum):
    """Interaction category of a prompt point.

    Values are the label codes the prompt encoder expects.
    """

    BACKGROUND = 0
    FOREGROUND = 1
    BOX_ORIGIN = 2
    BOX_END = 3

    @property
    def description(self) -> str:
        """Human readable name."""
        return self.name.replace("_", " ").title()


class Tool(str, enum.Enum):
    """Gesture tool selected in the presentation layer."""

    POINT = "point"
    BOUNDING_BOX = "bounding_box"


class PipelineState(str, enum.Enum):
    """State of a segmentation session's forward pass."""

    IDLE = "idle"
    ENCODING = "encoding"
    AWAITING_PROMPT = "awaiting_prompt"
    DECODING = "decoding"


class ColorMetric(str, enum.Enum):
    """Distance aggregation used when picking a tint color."""

    MIN = "min"
    SUM = "sum"
