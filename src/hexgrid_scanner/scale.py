"""Screenshot scale estimation relative to the 1920x1080 reference layout.

Strategy:
1. Run every estimation strategy independently. Each one either returns a
   :class:`ScaleCandidate` or ``None`` ("no opinion"). A strategy that raises
   is logged and treated as ``None``.
2. Keep candidates whose confidence reaches the floor and average their
   scale factors weighted by confidence.
3. If nothing clears the floor, fall back to the reference scale with low
   confidence. Estimation never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import cv2
import numpy as np

from .config import LayoutConfig
from .constants import SQRT3, SUPPORTED_RESOLUTIONS
from .hexmath import PixelPoint

logger = logging.getLogger(__name__)

CANDIDATE_FLOOR = 0.4
MAX_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.3

RESOLUTION_CONFIDENCE = 0.8
ASPECT_CONFIDENCE = 0.6
ASPECT_TOLERANCE = 0.1

# Accepted distance between neighbouring profile peaks, in pixels.
MIN_PEAK_SPACING = 8
MAX_PEAK_SPACING = 200
MIN_SPACINGS = 3
PROFILE_SMOOTHING = 5


@dataclass(frozen=True)
class ScaleCandidate:
    scale_factor: float
    confidence: float
    method: str


@dataclass(frozen=True)
class ScaleEstimate:
    scale_factor: float
    grid_origin: PixelPoint
    confidence: float
    method: str


ScaleStrategy = Callable[[int, int, "np.ndarray | None", LayoutConfig], "ScaleCandidate | None"]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def resolution_strategy(
    width: int, height: int, pixels: np.ndarray | None, layout: LayoutConfig
) -> ScaleCandidate | None:
    """Exact lookup against the known supported resolutions."""
    scale = SUPPORTED_RESOLUTIONS.get((width, height))
    if scale is None:
        return None
    return ScaleCandidate(scale, RESOLUTION_CONFIDENCE, "resolution")


def aspect_strategy(
    width: int, height: int, pixels: np.ndarray | None, layout: LayoutConfig
) -> ScaleCandidate | None:
    """Nearest supported aspect ratio; scale follows the frame height."""
    if width <= 0 or height <= 0:
        return None
    ratio = width / height
    best = min(abs(ratio - w / h) for w, h in SUPPORTED_RESOLUTIONS)
    if best >= ASPECT_TOLERANCE:
        return None
    return ScaleCandidate(height / layout.reference_height, ASPECT_CONFIDENCE, "aspect")


def _profile_peaks(profile: np.ndarray) -> np.ndarray:
    threshold = profile.mean() + 0.5 * profile.std()
    inner = profile[1:-1]
    is_peak = (inner > profile[:-2]) & (inner >= profile[2:]) & (inner > threshold)
    return np.flatnonzero(is_peak) + 1


def _reject_outliers(values: np.ndarray) -> np.ndarray:
    q1, q3 = np.percentile(values, [25, 75])
    iqr = q3 - q1
    keep = (values >= q1 - 1.5 * iqr) & (values <= q3 + 1.5 * iqr)
    return values[keep]


def grid_spacing_strategy(
    width: int, height: int, pixels: np.ndarray | None, layout: LayoutConfig
) -> ScaleCandidate | None:
    """Infer the row pitch of the icon grid from a vertical intensity profile.

    The profile is the mean intensity of a narrow band around the frame's
    vertical centre line. Icons in one column repeat every ``sqrt(3) * R``
    pixels, so the median spacing between profile peaks gives the scale.
    """
    if pixels is None or pixels.size == 0:
        return None

    gray = cv2.cvtColor(pixels, cv2.COLOR_BGR2GRAY) if pixels.ndim == 3 else pixels
    h, w = gray.shape
    half_band = max(2, w // 40)
    band = gray[:, max(0, w // 2 - half_band) : w // 2 + half_band].astype(np.float32)
    profile = band.mean(axis=1)
    kernel = np.ones(PROFILE_SMOOTHING, dtype=np.float32) / PROFILE_SMOOTHING
    profile = np.convolve(profile, kernel, mode="same")

    peaks = _profile_peaks(profile)
    spacings = np.diff(peaks).astype(np.float64)
    spacings = spacings[(spacings >= MIN_PEAK_SPACING) & (spacings <= MAX_PEAK_SPACING)]
    if len(spacings) < MIN_SPACINGS:
        logger.debug("Grid spacing: only %d usable peak spacings", len(spacings))
        return None

    spacings = _reject_outliers(spacings)
    mean = float(spacings.mean())
    variation = float(spacings.std()) / mean
    confidence = float(np.clip(1.0 - variation / 0.3, 0.3, 0.8))
    scale = float(np.median(spacings)) / (SQRT3 * layout.hex_radius)
    logger.debug(
        "Grid spacing: median %.1fpx over %d peaks -> scale %.3f (conf %.2f)",
        float(np.median(spacings)),
        len(peaks),
        scale,
        confidence,
    )
    return ScaleCandidate(scale, confidence, "grid_spacing")


DEFAULT_STRATEGIES: tuple[ScaleStrategy, ...] = (
    resolution_strategy,
    aspect_strategy,
    grid_spacing_strategy,
)


# ---------------------------------------------------------------------------
# Consolidation
# ---------------------------------------------------------------------------


def consolidate(
    candidates: Sequence[ScaleCandidate], floor: float = CANDIDATE_FLOOR
) -> ScaleCandidate | None:
    """Confidence-weighted mean of the candidates that reach *floor*."""
    usable = [c for c in candidates if c.confidence >= floor and c.scale_factor > 0]
    if not usable:
        return None
    total = sum(c.confidence for c in usable)
    scale = sum(c.scale_factor * c.confidence for c in usable) / total
    confidence = min(MAX_CONFIDENCE, total / len(usable))
    method = "+".join(c.method for c in usable)
    return ScaleCandidate(scale, confidence, method)


class ScaleEstimator:
    """Estimates scale factor and grid origin for one screenshot."""

    def __init__(
        self,
        layout: LayoutConfig | None = None,
        strategies: Sequence[ScaleStrategy] = DEFAULT_STRATEGIES,
        floor: float = CANDIDATE_FLOOR,
    ) -> None:
        self.layout = layout or LayoutConfig()
        self.strategies = tuple(strategies)
        self.floor = floor

    def candidates(
        self, width: int, height: int, pixels: np.ndarray | None = None
    ) -> list[ScaleCandidate]:
        found: list[ScaleCandidate] = []
        for strategy in self.strategies:
            name = getattr(strategy, "__name__", repr(strategy))
            try:
                candidate = strategy(width, height, pixels, self.layout)
            except Exception:
                logger.warning("Scale strategy %s failed", name, exc_info=True)
                continue
            if candidate is not None:
                logger.debug(
                    "Scale strategy %s: %.3f (conf %.2f)",
                    name,
                    candidate.scale_factor,
                    candidate.confidence,
                )
                found.append(candidate)
        return found

    def estimate(
        self, width: int, height: int, pixels: np.ndarray | None = None
    ) -> ScaleEstimate:
        origin = PixelPoint(max(width, 0) / 2, max(height, 0) / 2)
        merged = consolidate(self.candidates(width, height, pixels), self.floor)
        if merged is None:
            logger.info(
                "No scale strategy cleared the floor for %dx%d; using fallback", width, height
            )
            return ScaleEstimate(1.0, origin, FALLBACK_CONFIDENCE, "fallback")
        return ScaleEstimate(merged.scale_factor, origin, merged.confidence, merged.method)
