"""Tests for coordinate transforms."""

import pytest

from samoverlay_backend.errors import InvalidDimensionsError
from samoverlay_backend.services.coordinates import (
    from_model_space,
    from_ui_space,
    to_model_space,
    to_ui_space,
)


class TestToModelSpace:
    """Tests for to_model_space."""

    def test_normalized_point_scales_to_input_size(self) -> None:
        """Test that a normalized point is scaled by the model input size."""
        result = to_model_space([(0.2, 0.2)], (500, 500))

        assert result[0] == pytest.approx((204.8, 204.8))

    def test_normalize_divides_by_original_size(self) -> None:
        """Test that normalize mode maps pixels through normalized space."""
        result = to_model_space([(100, 50)], (500, 250), normalize=True)

        assert result[0] == pytest.approx((204.8, 204.8))

    def test_non_square_input_size(self) -> None:
        """Test scaling into a non-square model input."""
        result = to_model_space([(0.5, 0.5)], (10, 10), input_size=(512, 256))

        assert result[0] == pytest.approx((256.0, 128.0))

    def test_empty_points(self) -> None:
        """Test that no points transform to no points."""
        assert to_model_space([], (100, 100)) == []

    @pytest.mark.parametrize("orig_size", [(0, 100), (100, 0), (-1, 10)])
    def test_invalid_original_size_raises(self, orig_size: tuple[float, float]) -> None:
        """Test that non-positive sizes are rejected."""
        with pytest.raises(InvalidDimensionsError):
            to_model_space([(0.5, 0.5)], orig_size)

    def test_invalid_input_size_raises(self) -> None:
        """Test that a non-positive model input size is rejected."""
        with pytest.raises(InvalidDimensionsError):
            to_model_space([(0.5, 0.5)], (100, 100), input_size=(0, 1024))


class TestFromModelSpace:
    """Tests for from_model_space."""

    @pytest.mark.parametrize("normalize", [False, True])
    def test_inverts_to_model_space(self, normalize: bool) -> None:
        """Test that from_model_space undoes to_model_space with the same arguments."""
        orig_size = (640, 480)
        points = [(0.0, 0.0), (0.25, 0.75), (1.0, 1.0)] if not normalize else [(0, 0), (160, 360), (640, 480)]

        model_points = to_model_space(points, orig_size, normalize=normalize)
        restored = from_model_space(model_points, orig_size, normalize=normalize)

        for original, back in zip(points, restored, strict=True):
            assert back == pytest.approx(original)

    def test_invalid_size_raises(self) -> None:
        """Test that non-positive sizes are rejected."""
        with pytest.raises(InvalidDimensionsError):
            from_model_space([(10, 10)], (0, 0))


class TestUiSpace:
    """Tests for displayed-frame conversions."""

    def test_from_ui_space(self) -> None:
        """Test that frame pixels become normalized coordinates."""
        assert from_ui_space((100, 50), (500, 200)) == pytest.approx((0.2, 0.25))

    def test_to_ui_space(self) -> None:
        """Test that normalized coordinates become frame pixels."""
        assert to_ui_space((0.2, 0.25), (500, 200)) == pytest.approx((100, 50))

    def test_zero_frame_raises(self) -> None:
        """Test that a zero-sized frame is rejected."""
        with pytest.raises(InvalidDimensionsError):
            from_ui_space((1, 1), (0, 100))
