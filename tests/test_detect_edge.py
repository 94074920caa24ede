"""Tests for the edge detector."""

import numpy as np

from hexgrid_scanner.detect_edge import (
    EdgeDetector,
    border_continuity,
    corner_strengths,
    edge_thickness,
)
from hexgrid_scanner.regions import NormalizedRegion
from hexgrid_scanner.synthetic import bordered_pixels, uniform_pixels


def _framed() -> NormalizedRegion:
    return NormalizedRegion(bordered_pixels((30, 30, 30)))


class TestEdgeMeasures:
    def test_border_ring_is_continuous(self):
        region = _framed()
        magnitude, _ = region.gradients
        continuity, hits, strength = border_continuity(region, magnitude, 0.3)
        assert hits > 8
        assert continuity > 0.7
        assert strength > 0.4

    def test_corners_found_on_frame(self):
        region = _framed()
        magnitude, _ = region.gradients
        corners = corner_strengths(region, magnitude, window=5)
        assert len(corners) == 6
        assert sum(1 for c in corners if c > 0.3) >= 4

    def test_thickness(self):
        edges = np.zeros((12, 12), dtype=bool)
        edges[4, :] = True
        assert edge_thickness(edges) == 4.0
        assert edge_thickness(np.zeros((12, 12), dtype=bool)) == 0.0


class TestEdgeDetector:
    def test_bright_frame_is_selection_border(self):
        result = EdgeDetector().analyze(_framed())
        assert result.diagnostics["selection_pattern"]
        assert result.selected
        assert result.confidence > 0.5

    def test_flat_region_degrades(self):
        result = EdgeDetector().analyze(NormalizedRegion(uniform_pixels((200, 200, 200))))
        assert result.degraded
        assert not result.selected
