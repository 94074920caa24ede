"""Tests for offline calibration."""

import logging

import numpy as np
import pytest

from hexgrid_scanner.calibration import (
    CalibrationSample,
    calibrate,
    calibrate_brightness,
    calibrate_weights,
    detector_accuracy,
    learn_templates,
)
from hexgrid_scanner.config import (
    BrightnessConfig,
    DetectorWeights,
    PatternConfig,
    RecognitionConfig,
)
from hexgrid_scanner.consensus import DetectorOutcomes
from hexgrid_scanner.constants import Algorithm
from hexgrid_scanner.detection import DetectorResult
from hexgrid_scanner.regions import NormalizedRegion
from hexgrid_scanner.synthetic import render_icon

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sample(
    index: int, actual: bool, region: NormalizedRegion | None = None
) -> CalibrationSample:
    """Brightness always right, pattern always wrong."""
    brightness = DetectorResult(
        Algorithm.BRIGHTNESS,
        actual,
        0.8,
        {"average_brightness": 0.8 if actual else 0.3},
    )
    pattern = DetectorResult(Algorithm.PATTERN, not actual, 0.6)
    return CalibrationSample(
        f"regular:{index},0",
        actual,
        DetectorOutcomes(brightness=brightness, pattern=pattern),
        region,
    )


def _samples(n: int = 12) -> list[CalibrationSample]:
    return [_sample(i, i % 2 == 0) for i in range(n)]


# ---------------------------------------------------------------------------
# Pieces
# ---------------------------------------------------------------------------


class TestAccuracy:
    def test_per_detector(self):
        accuracy = detector_accuracy(_samples())
        assert accuracy == {Algorithm.BRIGHTNESS: 1.0, Algorithm.PATTERN: 0.0}

    def test_weights_follow_accuracy(self):
        weights = calibrate_weights(
            DetectorWeights(), {Algorithm.BRIGHTNESS: 1.0, Algorithm.PATTERN: 0.0}
        )
        assert weights.brightness == pytest.approx(0.35)
        assert weights.pattern == pytest.approx(0.15)
        assert sum(weights.as_dict().values()) == pytest.approx(1.0)

    def test_weights_stay_bounded(self):
        weights = calibrate_weights(
            DetectorWeights(0.5, 0.2, 0.2, 0.1), {Algorithm.BRIGHTNESS: 1.0}
        )
        # clamped to 0.5 before renormalizing
        assert weights.brightness == pytest.approx(0.5)

    def test_brightness_thresholds(self):
        out = calibrate_brightness(BrightnessConfig(), _samples())
        assert out.selected_min == pytest.approx(0.7)
        assert out.unselected_max == pytest.approx(0.4)

    def test_overlapping_brightness_meets_in_middle(self):
        samples = [
            CalibrationSample(
                str(i),
                i % 2 == 0,
                DetectorOutcomes(
                    brightness=DetectorResult(
                        Algorithm.BRIGHTNESS, True, 0.5, {"average_brightness": 0.55}
                    )
                ),
            )
            for i in range(10)
        ]
        out = calibrate_brightness(BrightnessConfig(), samples)
        assert out.selected_min == out.unselected_max


class TestLearnTemplates:
    def test_keeps_confident_correct_matches(self):
        region = NormalizedRegion(render_icon(True))
        samples = [
            CalibrationSample(
                str(i),
                True,
                DetectorOutcomes(pattern=DetectorResult(Algorithm.PATTERN, True, 0.9)),
                region,
            )
            for i in range(5)
        ]
        learned = learn_templates(PatternConfig(), samples)
        assert len(learned.learned_selected) == 3
        assert learned.learned_unselected == ()
        np.testing.assert_allclose(learned.learned_selected[0], region.luminance)

    def test_ignores_wrong_or_unsure(self):
        region = NormalizedRegion(render_icon(False))
        wrong = DetectorResult(Algorithm.PATTERN, True, 0.9)
        unsure = DetectorResult(Algorithm.PATTERN, False, 0.5)
        samples = [
            CalibrationSample("a", False, DetectorOutcomes(pattern=wrong), region),
            CalibrationSample("b", False, DetectorOutcomes(pattern=unsure), region),
        ]
        learned = learn_templates(PatternConfig(), samples)
        assert learned.learned_unselected == ()


# ---------------------------------------------------------------------------
# calibrate
# ---------------------------------------------------------------------------


class TestCalibrate:
    def test_changes_configuration(self):
        config = RecognitionConfig()
        calibrated = calibrate(config, _samples())
        assert calibrated is not config
        assert calibrated != config
        assert calibrated.weights.brightness > config.weights.brightness
        assert calibrated.weights.pattern < config.weights.pattern
        assert sum(calibrated.weights.as_dict().values()) == pytest.approx(1.0)

    def test_input_untouched(self):
        config = RecognitionConfig()
        calibrate(config, _samples())
        assert config == RecognitionConfig()

    def test_floor_moves_toward_wrong_votes(self):
        calibrated = calibrate(RecognitionConfig(), _samples())
        assert calibrated.thresholds.minimum_confidence == pytest.approx(0.33)

    def test_too_few_samples_is_noop(self, caplog):
        config = RecognitionConfig()
        with caplog.at_level(logging.WARNING, logger="hexgrid_scanner.calibration"):
            result = calibrate(config, _samples(9))
        assert result is config
        assert "at least 10" in caplog.text
