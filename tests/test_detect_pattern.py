"""Tests for the pattern detector."""

import numpy as np
import pytest

from hexgrid_scanner.config import PatternConfig, RecognitionConfig
from hexgrid_scanner.detect_pattern import (
    PatternDetector,
    geometric_templates,
    masked_ncc,
    rotate,
)
from hexgrid_scanner.hexmath import hex_mask
from hexgrid_scanner.regions import NormalizedRegion
from hexgrid_scanner.synthetic import glow_pixels, muted_template, uniform_pixels


class TestTemplates:
    def test_template_banks(self):
        selected, unselected = geometric_templates(48)
        assert set(selected) == {"radial_glow", "highlighted_border", "glow_ring"}
        assert set(unselected) == {"recessed", "shadowed_rim", "top_lit"}
        for tpl in [*selected.values(), *unselected.values()]:
            assert tpl.shape == (48, 48)
            assert 0.0 <= tpl.min() and tpl.max() <= 1.0

    def test_deterministic(self):
        a, _ = geometric_templates(40)
        b, _ = geometric_templates(40)
        np.testing.assert_array_equal(a["glow_ring"], b["glow_ring"])

    def test_learned_templates_join_banks(self, rng):
        config = RecognitionConfig(pattern=PatternConfig(learned_unselected=(muted_template(rng),)))
        _, unselected = PatternDetector(config).templates((48, 48))
        assert "learned_0" in unselected


class TestCorrelation:
    def test_self_correlation_is_one(self, rng):
        a = rng.random((48, 48))
        assert masked_ncc(a, a, hex_mask(48, 48)) == pytest.approx(1.0)

    def test_inverse_correlation(self, rng):
        a = rng.random((48, 48))
        assert masked_ncc(a, 1 - a, hex_mask(48, 48)) == pytest.approx(-1.0)

    def test_flat_input_is_zero(self, rng):
        assert masked_ncc(np.ones((48, 48)), rng.random((48, 48)), hex_mask(48, 48)) == 0.0

    def test_rotate_keeps_shape(self):
        gray = np.zeros((48, 48), dtype=np.float32)
        assert rotate(gray, 5.0).shape == (48, 48)


class TestPatternDetector:
    def test_radial_glow_selected(self):
        result = PatternDetector().analyze(NormalizedRegion(glow_pixels((200, 200, 200))))
        assert result.selected
        assert result.diagnostics["selected_scores"]["radial_glow"] > 0.9

    def test_noisy_dark_region_unselected(self, rng):
        pixels = np.clip(rng.normal(64, 38, (48, 48)), 0, 255)
        result = PatternDetector().analyze(NormalizedRegion(pixels))
        assert not result.selected

    def test_flat_region_degrades(self):
        result = PatternDetector().analyze(NormalizedRegion(uniform_pixels((90, 90, 90))))
        assert result.degraded
        assert result.confidence == pytest.approx(0.1)
