"""Tests for tint color assignment."""

import pytest

from samoverlay_backend.enums import ColorMetric
from samoverlay_backend.services.colors import CANDIDATE_COLORS, furthest_color
from samoverlay_backend.services.mask_postprocess import DEFAULT_TINT


class TestFurthestColor:
    """Tests for furthest_color."""

    @pytest.mark.parametrize("metric", [ColorMetric.MIN, ColorMetric.SUM])
    def test_nothing_used_returns_default_tint(self, metric: ColorMetric) -> None:
        """Test that the first segmentation gets the default tint."""
        assert furthest_color([], metric=metric) == DEFAULT_TINT

    @pytest.mark.parametrize("metric", [ColorMetric.MIN, ColorMetric.SUM])
    def test_last_unused_color_is_chosen(self, metric: ColorMetric) -> None:
        """Test that the only unused palette entry is picked."""
        remaining = CANDIDATE_COLORS[5]
        used = [c for c in CANDIDATE_COLORS if c != remaining]

        assert furthest_color(used, metric=metric) == remaining

    def test_min_metric_maximizes_closest_distance(self) -> None:
        """Test maximin selection over a small palette."""
        palette = [(0, 0, 0), (250, 0, 0), (130, 0, 0)]

        assert furthest_color([(0, 0, 0), (255, 0, 0)], palette=palette) == (130, 0, 0)

    def test_sum_metric_maximizes_total_distance(self) -> None:
        """Test that SUM favors the color far from most used colors."""
        palette = [(0, 0, 0), (10, 0, 0), (200, 0, 0), (255, 0, 0)]
        used = [(0, 0, 0), (10, 0, 0)]

        assert furthest_color(used, palette=palette, metric=ColorMetric.SUM) == (255, 0, 0)

    def test_ties_go_to_palette_order(self) -> None:
        """Test that equally distant candidates resolve to the earlier one."""
        palette = [(100, 100, 100), (0, 0, 0), (200, 0, 0), (0, 200, 0)]

        assert furthest_color([(100, 100, 100)], palette=palette) == (0, 0, 0)

    def test_all_used_considers_whole_palette(self) -> None:
        """Test that a fully used palette still yields a palette color."""
        palette = [(0, 0, 0), (255, 255, 255)]

        assert furthest_color([(0, 0, 0), (255, 255, 255), (0, 0, 0)], palette=palette) in palette

    def test_empty_palette_raises(self) -> None:
        """Test that an empty palette is rejected."""
        with pytest.raises(ValueError):
            furthest_color([(0, 0, 0)], palette=[])
