"""Pattern detector: template correlation plus structural cues.

Strategy:
1. Correlate the masked grayscale region with every selected/unselected
   template (normalized cross-correlation), retrying at small rotation
   offsets and keeping the best score per template.
2. Measure mirror and radial symmetry, local texture (roughness,
   granularity, directionality) and block uniformity/complexity.
3. Majority over template match, symmetry, texture and characteristics;
   the template verdict breaks ties.

Templates are deterministic geometric shapes. Calibration may add learned
templates through :class:`~hexgrid_scanner.config.PatternConfig`.
"""

from __future__ import annotations

from functools import lru_cache

import cv2
import numpy as np

from .constants import MASK_RADIUS_FRACTION, REGION_SIZE, Algorithm
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
WEAK_CORRELATION = 0.3
SYMMETRY_MIN = 0.6
RADIAL_ANGLES = 32
TEXTURE_WINDOW = 5  # half-width of the 11x11 texture window
TEXTURE_STRIDE = 5
ROUGHNESS_SCALE = 3.0
GRANULAR_EDGE = 0.3
BLOCK = 8
BLOCK_STRIDE = 4
UNIFORMITY_SCALE = 4.0

TemplateBank = dict[str, np.ndarray]


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _ring(d: np.ndarray, inner: float = 0.7, outer: float = 0.9) -> np.ndarray:
    return ((d > inner) & (d < outer)).astype(np.float32)


@lru_cache(maxsize=4)
def geometric_templates(size: int = REGION_SIZE) -> tuple[TemplateBank, TemplateBank]:
    """Built-in ``(selected, unselected)`` grayscale templates in [0, 1]."""
    ys, xs = np.mgrid[0:size, 0:size].astype(np.float32)
    dist = np.hypot(xs + 0.5 - size / 2, ys + 0.5 - size / 2)
    d = np.clip(dist / (size * MASK_RADIUS_FRACTION), 0.0, 1.0)
    vertical = (ys + 0.5) / size

    selected = {
        "radial_glow": 0.45 + 0.5 * (1.0 - d),
        "highlighted_border": 0.45 + 0.45 * _ring(d),
        "glow_ring": 0.4 + 0.3 * (1.0 - d) + 0.25 * _ring(d),
    }
    unselected = {
        "recessed": 0.2 + 0.25 * d,
        "shadowed_rim": 0.35 - 0.2 * _ring(d),
        "top_lit": 0.4 - 0.2 * vertical,
    }
    for bank in (selected, unselected):
        for key, tpl in bank.items():
            tpl = np.clip(tpl, 0.0, 1.0).astype(np.float32)
            tpl.setflags(write=False)
            bank[key] = tpl
    return selected, unselected


def masked_ncc(a: np.ndarray, b: np.ndarray, mask: np.ndarray) -> float:
    """Zero-mean normalized cross-correlation over the masked pixels."""
    av = a[mask].astype(np.float64)
    bv = b[mask].astype(np.float64)
    av -= av.mean()
    bv -= bv.mean()
    denom = np.sqrt((av * av).sum() * (bv * bv).sum())
    if denom < 1e-12:
        return 0.0
    return float((av * bv).sum() / denom)


def rotate(gray: np.ndarray, degrees: float) -> np.ndarray:
    h, w = gray.shape
    matrix = cv2.getRotationMatrix2D((w / 2, h / 2), degrees, 1.0)
    return cv2.warpAffine(
        gray, matrix, (w, h), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE
    )


def _fit(template: np.ndarray, shape: tuple[int, int]) -> np.ndarray:
    if template.shape == shape:
        return template
    source = template.astype(np.float32)
    return cv2.resize(source, (shape[1], shape[0]), interpolation=cv2.INTER_AREA)


# ---------------------------------------------------------------------------
# Structural measurements
# ---------------------------------------------------------------------------


def symmetry_scores(region: NormalizedRegion, gray: np.ndarray) -> dict[str, float]:
    mask = region.mask
    spread = 2.0 * float(gray[mask].std()) + 1e-6

    def mirror(flipped: np.ndarray) -> float:
        return 1.0 - min(1.0, float(np.abs(gray - flipped)[mask].mean()) / spread)

    horizontal = mirror(gray[:, ::-1])
    vertical = mirror(gray[::-1, :])

    h, w = gray.shape
    scale = region.min_side / REGION_SIZE
    cx, cy = region.center.x, region.center.y
    angles = np.linspace(0.0, 2 * np.pi, RADIAL_ANGLES, endpoint=False)
    ring_spread = []
    for radius in np.arange(5 * scale, region.mask_radius, 3 * scale):
        xs = np.clip((cx + radius * np.cos(angles)).astype(int), 0, w - 1)
        ys = np.clip((cy + radius * np.sin(angles)).astype(int), 0, h - 1)
        inside = mask[ys, xs]
        if inside.sum() >= 2:
            ring_spread.append(float(gray[ys[inside], xs[inside]].std()))
    if ring_spread:
        radial = 1.0 - min(1.0, float(np.mean(ring_spread)) / (spread / 2))
    else:
        radial = 0.0

    return {
        "horizontal": horizontal,
        "vertical": vertical,
        "radial": radial,
        "overall": (horizontal + vertical + radial) / 3,
    }


def texture_features(region: NormalizedRegion, gray: np.ndarray) -> dict[str, float]:
    mask = region.mask
    h, w = gray.shape
    k = TEXTURE_WINDOW
    local = []
    for y in range(k, h - k, TEXTURE_STRIDE):
        for x in range(k, w - k, TEXTURE_STRIDE):
            if not mask[y, x]:
                continue
            window_mask = mask[y - k : y + k + 1, x - k : x + k + 1]
            local.append(float(gray[y - k : y + k + 1, x - k : x + k + 1][window_mask].std()))
    roughness = min(1.0, float(np.mean(local)) * ROUGHNESS_SCALE) if local else 0.0

    magnitude, direction = region.gradients
    inner = region.inner_mask
    edges = inner & (magnitude > GRANULAR_EDGE)
    granularity = float(edges.sum()) / max(1, int(inner.sum()))
    if edges.sum() > 1:
        directionality = 1.0 - min(1.0, float(direction[edges].var()) / np.pi**2)
    else:
        directionality = 0.0
    return {
        "roughness": roughness,
        "granularity": granularity,
        "directionality": directionality,
    }


def pattern_characteristics(region: NormalizedRegion, gray: np.ndarray) -> dict[str, float]:
    mask = region.mask
    h, w = gray.shape
    block_std = []
    for y in range(0, h - BLOCK + 1, BLOCK):
        for x in range(0, w - BLOCK + 1, BLOCK):
            if mask[y + BLOCK // 2, x + BLOCK // 2]:
                block_std.append(float(gray[y : y + BLOCK, x : x + BLOCK].std()))
    uniformity = 1.0 - min(1.0, float(np.mean(block_std)) * UNIFORMITY_SCALE) if block_std else 0.0

    full = np.ones((BLOCK, BLOCK), dtype=bool)
    similarities = []
    for y in range(0, h - BLOCK + 1, BLOCK_STRIDE):
        for x in range(0, w - BLOCK - BLOCK_STRIDE + 1, BLOCK_STRIDE):
            if not (mask[y, x] and mask[y + BLOCK - 1, x + BLOCK + BLOCK_STRIDE - 1]):
                continue
            here = gray[y : y + BLOCK, x : x + BLOCK]
            there = gray[y : y + BLOCK, x + BLOCK_STRIDE : x + BLOCK_STRIDE + BLOCK]
            similarities.append(masked_ncc(here, there, full))
    repetitiveness = max(0.0, float(np.mean(similarities))) if similarities else 0.0

    magnitude, _ = region.gradients
    inner = region.inner_mask
    complexity = float((inner & (magnitude > GRANULAR_EDGE)).sum()) / max(1, int(inner.sum()))
    return {
        "uniformity": uniformity,
        "complexity": complexity,
        "repetitiveness": repetitiveness,
    }


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class PatternDetector(BaseDetector):
    algorithm = Algorithm.PATTERN

    def templates(self, shape: tuple[int, int]) -> tuple[TemplateBank, TemplateBank]:
        size = min(shape)
        base_sel, base_unsel = geometric_templates(size)
        selected = {k: _fit(v, shape) for k, v in base_sel.items()}
        unselected = {k: _fit(v, shape) for k, v in base_unsel.items()}
        cfg = self.config.pattern
        for i, tpl in enumerate(cfg.learned_selected):
            selected[f"learned_{i}"] = _fit(tpl, shape)
        for i, tpl in enumerate(cfg.learned_unselected):
            unselected[f"learned_{i}"] = _fit(tpl, shape)
        return selected, unselected

    def match_templates(
        self, region: NormalizedRegion, gray: np.ndarray
    ) -> tuple[dict[str, float], dict[str, float], bool]:
        """Best correlation per template and whether any rotation helped."""
        mask = region.mask
        rotated = [rotate(gray, angle) for angle in self.config.pattern.rotation_offsets]
        selected, unselected = self.templates(gray.shape)
        improved = False

        def best(bank: dict[str, np.ndarray]) -> dict[str, float]:
            nonlocal improved
            scores = {}
            for name, tpl in bank.items():
                straight = masked_ncc(gray, tpl, mask)
                turned = max((masked_ncc(r, tpl, mask) for r in rotated), default=straight)
                if turned > straight:
                    improved = True
                scores[name] = max(straight, turned)
            return scores

        return best(selected), best(unselected), improved

    def _analyze(self, region: NormalizedRegion) -> DetectorResult:
        cfg = self.config.pattern
        if region.contrast < ZERO_CONTRAST:
            return self.degraded("zero contrast")

        gray = region.luminance
        sel_scores, unsel_scores, rotation_improved = self.match_templates(region, gray)
        sel_best = max(sel_scores.values())
        unsel_best = max(unsel_scores.values())
        best_score = max(sel_best, unsel_best)

        symmetry = symmetry_scores(region, gray)
        texture = texture_features(region, gray)
        traits = pattern_characteristics(region, gray)

        template_vote = SubVote(
            "template", sel_best > unsel_best, max(0.0, min(1.0, best_score)), 0.4
        )
        smooth = texture["roughness"] < 0.4 and texture["granularity"] < 0.5
        smooth_conf = 1.0 - (texture["roughness"] + texture["granularity"]) / 2
        clean = traits["uniformity"] > 0.6 and traits["complexity"] < 0.5
        clean_conf = (traits["uniformity"] + 1.0 - traits["complexity"]) / 2
        symmetric = symmetry["overall"] > SYMMETRY_MIN
        votes = (
            template_vote,
            SubVote(
                "symmetry",
                symmetric,
                symmetry["overall"] if symmetric else 1.0 - symmetry["overall"],
                0.2,
            ),
            SubVote("texture", smooth, smooth_conf if smooth else 1.0 - smooth_conf, 0.2),
            SubVote(
                "characteristics", clean, clean_conf if clean else 1.0 - clean_conf, 0.2
            ),
        )
        selected = majority(votes, tie_breaker=bool(template_vote.selected))

        confidence = anchor_confidence(template_vote, selected)
        if rotation_improved:
            confidence *= 1.1
        confidence += 0.3 * agreement(votes, selected)
        if best_score < cfg.correlation_threshold:
            confidence *= 0.6
        if best_score < WEAK_CORRELATION:
            confidence *= 0.7

        return self.result(
            selected,
            confidence,
            {
                "selected_scores": sel_scores,
                "unselected_scores": unsel_scores,
                "best_correlation": best_score,
                "matched": best_score >= cfg.correlation_threshold,
                "rotation_improved": rotation_improved,
                "symmetry": symmetry,
                "texture": texture,
                "characteristics": traits,
                "votes": self.votes_payload(votes),
            },
        )
