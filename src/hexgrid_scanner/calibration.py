"""Offline calibration of weights and thresholds from labeled slots.

``calibrate`` never mutates its input: it returns a new
:class:`RecognitionConfig`, to be swapped in between batches.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

import numpy as np

from .config import (
    BrightnessConfig,
    ConsensusThresholds,
    DetectorWeights,
    PatternConfig,
    RecognitionConfig,
)
from .consensus import DetectorOutcomes
from .constants import Algorithm
from .regions import NormalizedRegion

logger = logging.getLogger(__name__)

MIN_SAMPLES = 10
WEIGHT_STEP = 0.1
WEIGHT_BOUNDS = (0.1, 0.5)
THRESHOLD_MARGIN = 0.1
SELECTED_MIN_FLOOR = 0.5
UNSELECTED_MAX_CEILING = 0.6
FLOOR_STEP = 0.1
FLOOR_BOUNDS = (0.05, 0.5)
TEMPLATE_CONFIDENCE = 0.8
MAX_LEARNED_TEMPLATES = 3


@dataclass(frozen=True)
class CalibrationSample:
    slot_id: str
    actual_selected: bool
    outcomes: DetectorOutcomes
    region: NormalizedRegion | None = None


def detector_accuracy(samples: Sequence[CalibrationSample]) -> dict[Algorithm, float]:
    """Fraction of correct votes per detector over the samples it answered."""
    accuracy: dict[Algorithm, float] = {}
    for algorithm in Algorithm:
        judged = [
            (s.outcomes.get(algorithm).selected == s.actual_selected)
            for s in samples
            if s.outcomes.get(algorithm) is not None
        ]
        if judged:
            accuracy[algorithm] = sum(judged) / len(judged)
    return accuracy


def calibrate_weights(
    weights: DetectorWeights, accuracy: dict[Algorithm, float]
) -> DetectorWeights:
    low, high = WEIGHT_BOUNDS
    nudged = {}
    for algorithm, weight in weights.as_dict().items():
        if algorithm in accuracy:
            weight += (accuracy[algorithm] - 0.5) * WEIGHT_STEP
        nudged[algorithm] = min(high, max(low, weight))
    return DetectorWeights.from_mapping(nudged)


def calibrate_brightness(
    brightness: BrightnessConfig, samples: Sequence[CalibrationSample]
) -> BrightnessConfig:
    selected, unselected = [], []
    for s in samples:
        result = s.outcomes.brightness
        if result is None or "average_brightness" not in result.diagnostics:
            continue
        bucket = selected if s.actual_selected else unselected
        bucket.append(float(result.diagnostics["average_brightness"]))

    selected_min = brightness.selected_min
    unselected_max = brightness.unselected_max
    if selected:
        selected_min = max(SELECTED_MIN_FLOOR, float(np.mean(selected)) - THRESHOLD_MARGIN)
    if unselected:
        unselected_max = min(UNSELECTED_MAX_CEILING, float(np.mean(unselected)) + THRESHOLD_MARGIN)
    selected_min = min(1.0, selected_min)
    unselected_max = max(0.0, unselected_max)
    if unselected_max > selected_min:
        # Overlapping populations: meet in the middle.
        selected_min = unselected_max = (selected_min + unselected_max) / 2
    return replace(brightness, selected_min=selected_min, unselected_max=unselected_max)


def calibrate_floor(
    thresholds: ConsensusThresholds, samples: Sequence[CalibrationSample]
) -> ConsensusThresholds:
    """Pull the minimum-confidence floor toward the confidence of wrong votes."""
    wrong = [
        r.confidence
        for s in samples
        for _, r in s.outcomes.items()
        if r is not None and r.selected != s.actual_selected
    ]
    if not wrong:
        return thresholds
    low, high = FLOOR_BOUNDS
    target = float(np.mean(wrong))
    floor = thresholds.minimum_confidence
    floor += (target - floor) * FLOOR_STEP
    floor = min(high, max(low, floor), thresholds.high_confidence)
    return replace(thresholds, minimum_confidence=floor)


def learn_templates(pattern: PatternConfig, samples: Sequence[CalibrationSample]) -> PatternConfig:
    """Keep luminance buffers of confidently and correctly matched regions."""
    learned = {True: list(pattern.learned_selected), False: list(pattern.learned_unselected)}
    for s in samples:
        result = s.outcomes.pattern
        if s.region is None or result is None:
            continue
        if result.selected != s.actual_selected or result.confidence < TEMPLATE_CONFIDENCE:
            continue
        bank = learned[s.actual_selected]
        if len(bank) < MAX_LEARNED_TEMPLATES:
            template = s.region.luminance.copy()
            template.setflags(write=False)
            bank.append(template)
    return replace(
        pattern,
        learned_selected=tuple(learned[True]),
        learned_unselected=tuple(learned[False]),
    )


def calibrate(
    config: RecognitionConfig,
    samples: Sequence[CalibrationSample],
    min_samples: int = MIN_SAMPLES,
) -> RecognitionConfig:
    """Return a configuration nudged toward the labeled *samples*.

    With fewer than *min_samples* samples this is a no-op and *config*
    itself is returned.
    """
    if len(samples) < min_samples:
        logger.warning(
            "Calibration needs at least %d samples, got %d; keeping configuration",
            min_samples,
            len(samples),
        )
        return config

    accuracy = detector_accuracy(samples)
    for algorithm, acc in accuracy.items():
        logger.info("Calibration accuracy %-10s %.2f%%", algorithm.value, acc * 100)

    calibrated = replace(
        config,
        weights=calibrate_weights(config.weights, accuracy),
        thresholds=calibrate_floor(config.thresholds, samples),
        brightness=calibrate_brightness(config.brightness, samples),
        pattern=learn_templates(config.pattern, samples),
    )
    logger.info(
        "Calibrated weights: %s",
        ", ".join(f"{a.value}={w:.3f}" for a, w in calibrated.weights.as_dict().items()),
    )
    return calibrated
