"""Colour detector: palette, warmth and glow of the icon.

Strategy:
1. Cluster the masked pixels (every ``sample_step``-th row and column)
   greedily by L1 distance into running-mean colours; keep the largest
   ``dominant_colors`` clusters.
2. Derive temperature, saturation, variety and the primary/secondary
   contrast ratio from the dominant colours, and a radial glow profile
   from the luminance.
3. Score the primary/secondary pair against the selected and unselected
   exemplar libraries.
4. Weighted majority over profile (0.4), temperature, saturation and glow
   (0.2 each).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .config import ColorProfile
from .constants import Algorithm
from .detection import (
    BaseDetector,
    DetectorResult,
    SubVote,
    agreement,
    anchor_confidence,
    weighted_majority,
)
from .regions import NormalizedRegion

GLOW_STEPS = 5
GLOW_ANGLES = 16
GLOW_DECREASE_RATIO = 0.6
GLOW_MIN_INTENSITY = 0.3
HIGHLIGHT_LUMINANCE = 0.8
VARIETY_SHARE = 0.05
MISSING_SECONDARY = 0.5
MAX_DISTANCE = 255.0


@dataclass(frozen=True)
class DominantColor:
    bgr: tuple[float, float, float]
    share: float

    @property
    def luminance(self) -> float:
        b, g, r = self.bgr
        return (0.299 * r + 0.587 * g + 0.114 * b) / 255.0


def dominant_colors(
    pixels: np.ndarray, max_colors: int, distance: float
) -> list[DominantColor]:
    """Greedy running-mean clustering of an ``(N, 3)`` pixel list."""
    if len(pixels) == 0:
        return []
    means: list[np.ndarray] = []
    counts: list[int] = []
    for px in pixels.astype(np.float64):
        if means:
            dists = np.abs(np.asarray(means) - px).sum(axis=1)
            j = int(np.argmin(dists))
            if dists[j] < distance:
                counts[j] += 1
                means[j] += (px - means[j]) / counts[j]
                continue
        means.append(px.copy())
        counts.append(1)

    total = float(len(pixels))
    order = np.argsort(counts)[::-1][:max_colors]
    return [
        DominantColor(tuple(float(c) for c in means[i]), counts[i] / total) for i in order
    ]


def _color_distance(a: tuple[float, ...], b: tuple[int, ...]) -> float:
    return math.dist(a, b)


def profile_similarity(
    primary: DominantColor, secondary: DominantColor | None, profile: ColorProfile
) -> float:
    primary_sim = max(0.0, 1.0 - _color_distance(primary.bgr, profile.primary) / MAX_DISTANCE)
    if secondary is None:
        secondary_sim = MISSING_SECONDARY
    else:
        secondary_sim = max(
            0.0, 1.0 - _color_distance(secondary.bgr, profile.secondary) / MAX_DISTANCE
        )
    return 0.7 * primary_sim + 0.3 * secondary_sim


def color_temperature(colors: list[DominantColor]) -> float:
    """Warmth in [0, 1]: red/green energy relative to blue."""
    total = sum(c.share for c in colors)
    if total <= 0:
        return 0.0
    warmth = sum(c.share * (c.bgr[2] + 0.5 * c.bgr[1]) / (c.bgr[0] + 1) for c in colors)
    return min(1.0, warmth / total / 3.0)


def color_saturation(colors: list[DominantColor]) -> float:
    total = sum(c.share for c in colors)
    if total <= 0:
        return 0.0
    sat = 0.0
    for c in colors:
        hi, lo = max(c.bgr), min(c.bgr)
        sat += c.share * ((hi - lo) / hi if hi > 0 else 0.0)
    return sat / total


def glow_profile(region: NormalizedRegion) -> list[float]:
    """Mean luminance at the centre and at evenly spaced radii out to the mask edge."""
    lum = region.luminance
    mask = region.mask
    cx, cy = region.center.x, region.center.y
    h, w = lum.shape
    profile = [float(lum[min(h - 1, int(cy)), min(w - 1, int(cx))])]
    angles = np.linspace(0.0, 2 * np.pi, GLOW_ANGLES, endpoint=False)
    for step in range(1, GLOW_STEPS + 1):
        radius = region.mask_radius * step / GLOW_STEPS
        xs = np.clip((cx + radius * np.cos(angles)).astype(int), 0, w - 1)
        ys = np.clip((cy + radius * np.sin(angles)).astype(int), 0, h - 1)
        inside = mask[ys, xs]
        if inside.any():
            profile.append(float(lum[ys[inside], xs[inside]].mean()))
    return profile


class ColorDetector(BaseDetector):
    algorithm = Algorithm.COLOR

    def _analyze(self, region: NormalizedRegion) -> DetectorResult:
        cfg = self.config.color
        step = cfg.sample_step
        sampled = region.pixels[::step, ::step][region.mask[::step, ::step]]
        colors = dominant_colors(sampled, cfg.dominant_colors, cfg.cluster_distance)
        if not colors:
            return self.degraded("no sampled pixels")

        primary = colors[0]
        secondary = colors[1] if len(colors) > 1 else None
        temperature = color_temperature(colors)
        saturation = color_saturation(colors)
        variety = min(1.0, sum(1 for c in colors if c.share > VARIETY_SHARE) / cfg.dominant_colors)
        if secondary is not None:
            l1, l2 = sorted((primary.luminance, secondary.luminance), reverse=True)
            contrast_ratio = (l1 + 0.05) / (l2 + 0.05)
        else:
            contrast_ratio = 1.0

        glow = glow_profile(region)
        steps = len(glow) - 1
        decreasing = sum(1 for a, b in zip(glow, glow[1:]) if b < a)
        has_glow = steps > 0 and decreasing / steps >= GLOW_DECREASE_RATIO
        glow_intensity = max(0.0, min(1.0, glow[0] - glow[-1]))

        sel_score = max(profile_similarity(primary, secondary, p) for p in cfg.selected_profiles)
        unsel_score = max(
            profile_similarity(primary, secondary, p) for p in cfg.unselected_profiles
        )
        score_diff = sel_score - unsel_score

        glowing = has_glow and glow_intensity > GLOW_MIN_INTENSITY
        profile_vote = SubVote(
            "profile", score_diff > 0, min(1.0, abs(score_diff) / 0.5), weight=0.4
        )
        votes = (
            profile_vote,
            SubVote(
                "temperature", temperature > 0.6, min(1.0, abs(temperature - 0.5) * 2), 0.2
            ),
            SubVote("saturation", saturation > 0.3, min(1.0, abs(saturation - 0.3) / 0.3), 0.2),
            SubVote(
                "glow", glowing, glow_intensity if glowing else 1.0 - glow_intensity, 0.2
            ),
        )
        selected = weighted_majority(votes)

        confidence = anchor_confidence(profile_vote, selected) + 0.3 * agreement(votes, selected)
        if contrast_ratio > 2.0:
            confidence *= 1.1
        if len(colors) < 2:
            confidence *= 0.7
        if abs(score_diff) < 0.1:
            confidence *= 0.8

        return self.result(
            selected,
            confidence,
            {
                "dominant_colors": [(c.bgr, c.share) for c in colors],
                "primary": primary.bgr,
                "secondary": secondary.bgr if secondary else None,
                "temperature": temperature,
                "saturation": saturation,
                "variety": variety,
                "contrast_ratio": contrast_ratio,
                "glow_profile": glow,
                "has_glow": has_glow,
                "glow_intensity": glow_intensity,
                "selected_score": sel_score,
                "unselected_score": unsel_score,
                "highlights": [c.bgr for c in colors if c.luminance > HIGHLIGHT_LUMINANCE],
                "votes": self.votes_payload(votes),
            },
        )
