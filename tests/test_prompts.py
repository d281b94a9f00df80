"""Tests for prompt packaging and the prompt encoder adapter."""

import numpy as np
import pytest

from samoverlay_backend.enums import PointCategory
from samoverlay_backend.errors import EncodingFailedError, ModelNotLoadedError
from samoverlay_backend.models import Box, TypedPoint
from samoverlay_backend.services.prompts import build_prompt_inputs, encode_prompt, point_sequence


class TestPointSequence:
    """Tests for point_sequence."""

    def test_box_corners_come_before_free_points(self) -> None:
        """Test that box corners precede free points regardless of creation order."""
        free = TypedPoint(x=0.5, y=0.5, category=PointCategory.FOREGROUND)
        box = Box(start=(0.1, 0.1), end=(0.3, 0.3))

        sequence = point_sequence([box], [free])

        assert [p.category for p in sequence] == [
            PointCategory.BOX_ORIGIN,
            PointCategory.BOX_END,
            PointCategory.FOREGROUND,
        ]
        assert sequence[0].coordinates == (0.1, 0.1)
        assert sequence[1].coordinates == (0.3, 0.3)
        assert sequence[2] is free

    def test_multiple_boxes_keep_order(self) -> None:
        """Test that boxes contribute corners in box order."""
        first = Box(start=(0.1, 0.1), end=(0.2, 0.2))
        second = Box(start=(0.6, 0.6), end=(0.9, 0.9))

        sequence = point_sequence([first, second], [])

        assert [p.coordinates for p in sequence] == [(0.1, 0.1), (0.2, 0.2), (0.6, 0.6), (0.9, 0.9)]


class TestBuildPromptInputs:
    """Tests for build_prompt_inputs."""

    def test_shapes_and_labels(self) -> None:
        """Test that coords are (1, N, 2) and labels (1, N) in point order."""
        points = [
            TypedPoint(x=0.1, y=0.1, category=PointCategory.BOX_ORIGIN),
            TypedPoint(x=0.3, y=0.3, category=PointCategory.BOX_END),
            TypedPoint(x=0.2, y=0.4, category=PointCategory.BACKGROUND),
        ]

        inputs = build_prompt_inputs(points, (500, 500))

        assert inputs.coords.shape == (1, 3, 2)
        assert inputs.coords.dtype == np.float32
        assert inputs.labels.tolist() == [[2, 3, 0]]
        assert inputs.num_points == 3
        assert inputs.coords[0, 2] == pytest.approx([204.8, 409.6])


class TestEncodePrompt:
    """Tests for encode_prompt."""

    def test_passes_model_space_points_to_engine(self, fake_engine) -> None:
        """Test that the engine receives model space coordinates and codes."""
        points = [TypedPoint(x=0.2, y=0.2, category=PointCategory.FOREGROUND)]

        encoding = encode_prompt(fake_engine, points, (500, 500))

        coords, labels = fake_engine.prompt_calls[0]
        assert coords[0, 0] == pytest.approx([204.8, 204.8])
        assert labels.tolist() == [[1]]
        assert encoding.num_points == 1

    def test_raises_when_model_not_loaded(self, fake_engine) -> None:
        """Test that an unloaded engine surfaces ModelNotLoadedError."""
        fake_engine.loaded = False
        points = [TypedPoint(x=0.2, y=0.2, category=PointCategory.FOREGROUND)]

        with pytest.raises(ModelNotLoadedError):
            encode_prompt(fake_engine, points, (500, 500))
        assert fake_engine.prompt_calls == []

    def test_wraps_engine_errors(self, fake_engine) -> None:
        """Test that engine exceptions become EncodingFailedError."""
        fake_engine.prompt_failures = 1
        points = [TypedPoint(x=0.2, y=0.2, category=PointCategory.FOREGROUND)]

        with pytest.raises(EncodingFailedError, match="prompt encoder crashed"):
            encode_prompt(fake_engine, points, (500, 500))
