"""Shared detector contract: result record, sub-votes and the base class.

Every detector turns one :class:`NormalizedRegion` into a
:class:`DetectorResult`. Failures never escape ``analyze``: too few masked
pixels, an unmeasurable region or an internal error all become an
unselected result at the configured confidence floor.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol

from .config import RecognitionConfig
from .constants import Algorithm
from .regions import NormalizedRegion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorResult:
    algorithm: Algorithm
    selected: bool
    confidence: float
    diagnostics: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def degraded(self) -> bool:
        return "degraded" in self.diagnostics


@dataclass(frozen=True)
class SubVote:
    """One line of evidence inside a detector.

    ``selected`` is ``None`` when the evidence abstains.
    """

    name: str
    selected: bool | None
    confidence: float
    weight: float = 1.0


class Detector(Protocol):
    algorithm: Algorithm

    def analyze(self, region: NormalizedRegion) -> DetectorResult: ...


def clamp01(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def majority(votes: Sequence[SubVote], tie_breaker: bool) -> bool:
    """Simple majority of the non-abstaining votes; ties go to *tie_breaker*."""
    yes = sum(1 for v in votes if v.selected is True)
    no = sum(1 for v in votes if v.selected is False)
    if yes == no:
        return tie_breaker
    return yes > no


def weighted_majority(votes: Sequence[SubVote]) -> bool:
    """True when the votes for "selected" carry more than half the weight."""
    total = sum(v.weight for v in votes if v.selected is not None)
    if total <= 0:
        return False
    yes = sum(v.weight for v in votes if v.selected is True)
    return yes / total > 0.5


def agreement(votes: Sequence[SubVote], decision: bool) -> float:
    """Weighted confidence of the votes that back *decision*, in [0, 1]."""
    total = sum(v.weight for v in votes if v.selected is not None)
    if total <= 0:
        return 0.0
    backing = sum(v.weight * v.confidence for v in votes if v.selected is decision)
    return backing / total


def anchor_confidence(vote: SubVote, decision: bool) -> float:
    """Confidence contributed by a detector's primary vote.

    When the final decision overrode the primary vote, its confidence only
    counts for half of what the vote left unclaimed.
    """
    if vote.selected is decision:
        return vote.confidence
    return 0.5 * (1.0 - vote.confidence)


class BaseDetector:
    """Guards a detector's analysis and shapes its result."""

    algorithm: ClassVar[Algorithm]

    def __init__(self, config: RecognitionConfig | None = None) -> None:
        self.config = config or RecognitionConfig()

    def analyze(self, region: NormalizedRegion) -> DetectorResult:
        if region.pixel_count < self.config.min_pixels:
            return self.degraded(f"only {region.pixel_count} masked pixels")
        try:
            return self._analyze(region)
        except Exception:
            logger.warning(
                "%s detector failed on slot %s",
                self.algorithm.value,
                region.slot_id or "?",
                exc_info=True,
            )
            return self.degraded("internal error")

    def _analyze(self, region: NormalizedRegion) -> DetectorResult:
        raise NotImplementedError

    def degraded(self, reason: str) -> DetectorResult:
        logger.debug("%s detector degraded: %s", self.algorithm.value, reason)
        return DetectorResult(
            self.algorithm, False, self.config.confidence_floor, {"degraded": reason}
        )

    def result(
        self, selected: bool, confidence: float, diagnostics: dict[str, Any]
    ) -> DetectorResult:
        floor = self.config.confidence_floor
        return DetectorResult(
            self.algorithm, bool(selected), max(floor, clamp01(confidence)), diagnostics
        )

    @staticmethod
    def votes_payload(votes: Sequence[SubVote]) -> dict[str, dict[str, Any]]:
        return {
            v.name: {"selected": v.selected, "confidence": round(v.confidence, 4)}
            for v in votes
        }
