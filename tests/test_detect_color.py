"""Tests for the colour detector and its palette helpers."""

import numpy as np
import pytest

from hexgrid_scanner.config import ColorProfile
from hexgrid_scanner.detect_color import (
    ColorDetector,
    DominantColor,
    color_saturation,
    color_temperature,
    dominant_colors,
    glow_profile,
    profile_similarity,
)
from hexgrid_scanner.regions import NormalizedRegion
from hexgrid_scanner.synthetic import (
    SELECTED_FILL,
    UNSELECTED_FILL,
    glow_pixels,
    render_icon,
    uniform_pixels,
)

# ---------------------------------------------------------------------------
# Palette helpers
# ---------------------------------------------------------------------------


class TestDominantColors:
    def test_two_clusters_ordered_by_share(self):
        pixels = np.array([[10, 10, 10]] * 30 + [[200, 200, 200]] * 10)
        colors = dominant_colors(pixels, max_colors=5, distance=30)
        assert len(colors) == 2
        assert colors[0].bgr == pytest.approx((10, 10, 10))
        assert colors[0].share == pytest.approx(0.75)

    def test_close_pixels_merge(self):
        pixels = np.array([[100, 100, 100], [104, 102, 100], [102, 101, 100]])
        colors = dominant_colors(pixels, max_colors=5, distance=30)
        assert len(colors) == 1
        assert colors[0].bgr == pytest.approx((102, 101, 100))

    def test_limited_to_max_colors(self):
        pixels = np.array([[i * 50, 0, 0] for i in range(6)])
        assert len(dominant_colors(pixels, max_colors=3, distance=30)) == 3

    def test_empty(self):
        assert dominant_colors(np.empty((0, 3)), 5, 30) == []


class TestPaletteMeasures:
    def test_exact_profile_match(self):
        profile = ColorProfile("golden", (120, 180, 200), (100, 140, 160))
        primary = DominantColor((120.0, 180.0, 200.0), 0.7)
        secondary = DominantColor((100.0, 140.0, 160.0), 0.3)
        assert profile_similarity(primary, secondary, profile) == pytest.approx(1.0)

    def test_missing_secondary_counts_half(self):
        profile = ColorProfile("golden", (120, 180, 200), (100, 140, 160))
        primary = DominantColor((120.0, 180.0, 200.0), 1.0)
        assert profile_similarity(primary, None, profile) == pytest.approx(0.85)

    def test_warm_hotter_than_cool(self):
        warm = [DominantColor((60.0, 150.0, 220.0), 1.0)]
        cool = [DominantColor((220.0, 150.0, 60.0), 1.0)]
        assert color_temperature(warm) > color_temperature(cool)

    def test_gray_has_no_saturation(self):
        assert color_saturation([DominantColor((90.0, 90.0, 90.0), 1.0)]) == 0.0

    def test_glow_profile_decreases(self):
        profile = glow_profile(NormalizedRegion(glow_pixels((180, 180, 180))))
        assert profile[0] > profile[-1]
        assert all(a >= b for a, b in zip(profile, profile[1:]))


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class TestColorDetector:
    def test_golden_fill_selected(self):
        result = ColorDetector().analyze(NormalizedRegion(uniform_pixels(SELECTED_FILL)))
        assert result.selected
        assert result.diagnostics["selected_score"] > result.diagnostics["unselected_score"]
        assert result.confidence > 0.5

    def test_gray_fill_unselected(self):
        result = ColorDetector().analyze(NormalizedRegion(uniform_pixels(UNSELECTED_FILL)))
        assert not result.selected
        assert result.diagnostics["temperature"] < 0.6

    def test_rendered_selected_icon(self):
        result = ColorDetector().analyze(NormalizedRegion(render_icon(True)))
        assert result.selected

    def test_diagnostics_carry_votes(self, rng):
        result = ColorDetector().analyze(NormalizedRegion(render_icon(False, rng=rng)))
        assert set(result.diagnostics["votes"]) == {
            "profile",
            "temperature",
            "saturation",
            "glow",
        }
