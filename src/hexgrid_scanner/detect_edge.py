"""Edge detector: selected icons carry a crisp, bright, continuous frame.

All measurements use the Sobel magnitude of the masked luminance
(see :attr:`NormalizedRegion.gradients`). Sub-votes and weights:

* border (0.30): edge hits around a ring near the mask edge are evenly spaced
* corners (0.25): at least four of the six hex corners carry strong edges
* distribution (0.20): edge energy concentrates in the outer zone
* selection border (0.25): strong edges over bright pixels form a ring
"""

from __future__ import annotations

import numpy as np

from .constants import REGION_SIZE, Algorithm
from .detection import (
    BaseDetector,
    DetectorResult,
    SubVote,
    agreement,
    anchor_confidence,
    majority,
)
from .regions import NormalizedRegion

ZERO_CONTRAST = 1e-3
BORDER_SAMPLES = 32
BORDER_RING = 0.8  # of the mask radius
CORNER_RING = 0.9
MIN_BORDER_HITS = 8
BORDER_CONTINUITY = 0.7
MIN_STRONG_CORNERS = 4
# Zone limits as fractions of the mask radius: centre | inner | outer.
ZONE_LIMITS = (0.25, 0.6, 1.0)
OUTER_RATIO = 1.2
BRIGHT_EDGE_LUMINANCE = 0.6
MIN_BRIGHT_EDGES = 8
BRIGHT_RING_SHARE = 0.7
THICKNESS_STRIDE = 4
THICKNESS_REACH = 3


def border_continuity(
    region: NormalizedRegion, magnitude: np.ndarray, threshold: float
) -> tuple[float, int, float]:
    """Continuity, hit count and mean strength of edges around the border ring."""
    h, w = magnitude.shape
    cx, cy = region.center.x, region.center.y
    radius = BORDER_RING * region.mask_radius
    angles = np.linspace(0.0, 2 * np.pi, BORDER_SAMPLES, endpoint=False)
    xs = np.clip((cx + radius * np.cos(angles)).astype(int), 1, w - 2)
    ys = np.clip((cy + radius * np.sin(angles)).astype(int), 1, h - 2)
    strengths = np.array(
        [magnitude[y - 1 : y + 2, x - 1 : x + 2].max() for x, y in zip(xs, ys)]
    )
    hits = np.flatnonzero(strengths > threshold)
    if len(hits) < 2:
        return 0.0, len(hits), float(strengths.mean())

    gaps = np.diff(np.append(hits, hits[0] + BORDER_SAMPLES)).astype(np.float64)
    continuity = max(0.0, 1.0 - float(gaps.std()) / float(gaps.mean()))
    return continuity, len(hits), float(strengths.mean())


def corner_strengths(
    region: NormalizedRegion, magnitude: np.ndarray, window: int
) -> list[float]:
    """Peak edge magnitude around each of the six mask corners."""
    h, w = magnitude.shape
    cx, cy = region.center.x, region.center.y
    radius = CORNER_RING * region.mask_radius
    out = []
    for k in range(6):
        angle = np.pi / 6 + k * np.pi / 3
        x = int(cx + radius * np.cos(angle))
        y = int(cy + radius * np.sin(angle))
        rows = slice(max(0, y - window), min(h, y + window + 1))
        cols = slice(max(0, x - window), min(w, x + window + 1))
        patch = magnitude[rows, cols]
        out.append(float(patch.max()) if patch.size else 0.0)
    return out


def zone_energy(region: NormalizedRegion, magnitude: np.ndarray) -> tuple[float, float, float]:
    """Mean edge magnitude of the centre, inner and outer zones."""
    dist, _ = region.polar
    norm = dist / region.mask_radius
    inner_mask = region.inner_mask
    means = []
    lower = 0.0
    for upper in ZONE_LIMITS:
        zone = inner_mask & (norm >= lower) & (norm < upper)
        means.append(float(magnitude[zone].mean()) if zone.any() else 0.0)
        lower = upper
    return means[0], means[1], means[2]


def edge_thickness(edges: np.ndarray) -> float:
    """Average run length of edge pixels, sampled on a sparse grid."""
    h, w = edges.shape
    directions = ((0, 1), (1, 0), (1, 1), (1, -1))
    runs = []
    for y in range(0, h, THICKNESS_STRIDE):
        for x in range(0, w, THICKNESS_STRIDE):
            if not edges[y, x]:
                continue
            longest = 1
            for dy, dx in directions:
                length = 1
                for step in range(1, THICKNESS_REACH + 1):
                    yy, xx = y + dy * step, x + dx * step
                    if not (0 <= yy < h and 0 <= xx < w) or not edges[yy, xx]:
                        break
                    length += 1
                longest = max(longest, length)
            runs.append(longest)
    return float(np.mean(runs)) if runs else 0.0


class EdgeDetector(BaseDetector):
    algorithm = Algorithm.EDGE

    def _analyze(self, region: NormalizedRegion) -> DetectorResult:
        cfg = self.config.edge
        if region.contrast < ZERO_CONTRAST or not region.inner_mask.any():
            return self.degraded("zero contrast")

        magnitude, _ = region.gradients
        lum = region.luminance
        edges = region.inner_mask & (magnitude > cfg.edge_threshold)
        edge_count = int(edges.sum())
        density = edge_count / int(region.inner_mask.sum())
        avg_strength = float(magnitude[edges].mean()) if edge_count else 0.0

        continuity, border_hits, border_strength = border_continuity(
            region, magnitude, cfg.edge_threshold
        )
        complete_border = continuity > BORDER_CONTINUITY and border_hits > MIN_BORDER_HITS

        window = max(1, round(cfg.corner_radius * region.min_side / REGION_SIZE))
        corners = corner_strengths(region, magnitude, window)
        strong_corners = sum(1 for c in corners if c > cfg.edge_threshold)
        corner_avg = float(np.mean(corners))

        center_e, inner_e, outer_e = zone_energy(region, magnitude)
        outer_to_inner = outer_e / (inner_e + 0.001)

        dist, _ = region.polar
        bright = edges & (lum > BRIGHT_EDGE_LUMINANCE)
        bright_count = int(bright.sum())
        ring_tolerance = region.min_side / 12
        near_ring = bright & (
            np.abs(dist - BORDER_RING * region.mask_radius) <= ring_tolerance
        )
        bright_continuous = (
            bright_count >= MIN_BRIGHT_EDGES
            and int(near_ring.sum()) / bright_count >= BRIGHT_RING_SHARE
        )
        bright_strength = float(magnitude[bright].mean()) if bright_count else 0.0
        selection_pattern = (
            bright_continuous and bright_strength > cfg.selection_border_intensity
        )

        border_sel = complete_border and border_strength > cfg.selection_border_intensity
        border_vote = SubVote(
            "border", border_sel, continuity if border_sel else 1.0 - continuity, 0.3
        )
        corner_sel = strong_corners >= MIN_STRONG_CORNERS and corner_avg > cfg.edge_threshold
        corner_share = strong_corners / 6
        votes = (
            border_vote,
            SubVote(
                "corners", corner_sel, corner_share if corner_sel else 1.0 - corner_share, 0.25
            ),
            SubVote(
                "distribution",
                outer_to_inner > OUTER_RATIO,
                min(1.0, abs(outer_to_inner - 1.0)),
                0.2,
            ),
            SubVote("selection_border", selection_pattern, 0.8 if selection_pattern else 0.5, 0.25),
        )
        selected = majority(votes, tie_breaker=selection_pattern)

        confidence = anchor_confidence(border_vote, selected) + 0.3 * agreement(votes, selected)
        if avg_strength > 0.5:
            confidence *= 1.1
        if selection_pattern:
            confidence *= 1.2
        if edge_count < 10:
            confidence *= 0.7
        if avg_strength < 0.2:
            confidence *= 0.8

        return self.result(
            selected,
            confidence,
            {
                "edge_density": density,
                "edge_count": edge_count,
                "average_strength": avg_strength,
                "border_continuity": continuity,
                "border_hits": border_hits,
                "border_strength": border_strength,
                "corner_strengths": corners,
                "zone_energy": {"center": center_e, "inner": inner_e, "outer": outer_e},
                "outer_to_inner": outer_to_inner,
                "bright_edges": bright_count,
                "bright_strength": bright_strength,
                "selection_pattern": selection_pattern,
                "edge_thickness": edge_thickness(edges),
                "votes": self.votes_payload(votes),
            },
        )
