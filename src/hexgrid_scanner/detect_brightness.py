"""Brightness detector: selected icons are lit up.

Three sub-votes decide by majority:

* **threshold**: masked average luminance against the selected/unselected
  thresholds. Its verdict also breaks ties.
* **gradient**: centre brighter than the rim. A flat profile abstains.
* **uniformity**: evenly but not perfectly flat lighting, i.e. uniformity
  in the mid band.
"""

from __future__ import annotations

from .constants import Algorithm
from .detection import (
    BaseDetector,
    DetectorResult,
    SubVote,
    anchor_confidence,
    majority,
)
from .regions import NormalizedRegion

CENTER_FRACTION = 0.2  # of the region's shorter side
RIM_INNER_FRACTION = 0.7  # of the mask radius
FLAT_GRADIENT = 0.05
GRADIENT_FULL_SCALE = 0.2
UNIFORMITY_STD_SCALE = 0.3
UNIFORMITY_BAND = (0.7, 0.95)
LOW_PIXEL_COUNT = 100


def _threshold_vote(average: float, selected_min: float, unselected_max: float) -> SubVote:
    if average >= selected_min:
        span = 1.0 - selected_min
        conf = (average - selected_min) / span if span > 0 else 1.0
        return SubVote("threshold", True, conf)
    if average <= unselected_max:
        conf = (unselected_max - average) / unselected_max if unselected_max > 0 else 1.0
        return SubVote("threshold", False, conf)

    mid = (selected_min + unselected_max) / 2
    span = selected_min - unselected_max
    return SubVote("threshold", average > mid, max(0.1, abs(average - mid) / span))


def _gradient_vote(gradient: float) -> SubVote:
    if abs(gradient) <= FLAT_GRADIENT:
        return SubVote("gradient", None, 0.0)
    return SubVote("gradient", gradient > 0, min(1.0, abs(gradient) / GRADIENT_FULL_SCALE))


def _uniformity_vote(uniformity: float) -> SubVote:
    low, high = UNIFORMITY_BAND
    if low < uniformity < high:
        return SubVote("uniformity", True, uniformity)
    return SubVote("uniformity", False, 0.3)


class BrightnessDetector(BaseDetector):
    algorithm = Algorithm.BRIGHTNESS

    def _analyze(self, region: NormalizedRegion) -> DetectorResult:
        cfg = self.config.brightness
        lum = region.luminance
        mask = region.mask
        dist, _ = region.polar
        values = lum[mask]

        average = float(values.mean())
        center_sel = mask & (dist <= CENTER_FRACTION * region.min_side)
        rim_sel = mask & (dist >= RIM_INNER_FRACTION * region.mask_radius)
        center = float(lum[center_sel].mean()) if center_sel.any() else average
        rim = float(lum[rim_sel].mean()) if rim_sel.any() else average
        gradient = center - rim
        std = float(values.std())
        uniformity = 1.0 - min(1.0, std / UNIFORMITY_STD_SCALE)
        contrast = float(values.max() - values.min())

        threshold = _threshold_vote(average, cfg.selected_min, cfg.unselected_max)
        grad = _gradient_vote(gradient)
        uniform = _uniformity_vote(uniformity)
        votes = (threshold, grad, uniform)
        selected = majority(votes, tie_breaker=bool(threshold.selected))

        confidence = anchor_confidence(threshold, selected)
        if grad.selected is selected:
            confidence += 0.2 * grad.confidence
        if uniform.selected is selected:
            confidence += 0.1 * uniform.confidence

        if region.pixel_count < LOW_PIXEL_COUNT:
            confidence *= 0.8
        if contrast < cfg.contrast_min:
            confidence *= 0.85
        if abs(average - cfg.midpoint) < cfg.ambiguous_range / 4:
            confidence *= 0.6

        return self.result(
            selected,
            confidence,
            {
                "average_brightness": average,
                "center_brightness": center,
                "edge_brightness": rim,
                "gradient": gradient,
                "uniformity": uniformity,
                "contrast": contrast,
                "pixel_count": region.pixel_count,
                "votes": self.votes_payload(votes),
            },
        )
