"""Fuse the four detector verdicts for one slot into a single decision.

Strategy:
1. Clamp confidences to [0, 1]. A detector is *unavailable* when it has no
   result (crash, timeout) or its confidence is under the minimum floor.
2. Weighted vote over the available detectors with renormalized weights.
3. Overall confidence: weighted mean confidence, boosted when two or more
   detectors are highly confident, penalized per unavailable detector.
4. Pairwise agreement weighted by each pair's mean confidence.
5. First matching decision rule wins: high-confidence consensus, strong
   majority, single high-confidence detector, weak consensus.
6. Quality flags (``ambiguous``, ``reliable``) for manual review.
"""

from __future__ import annotations

import itertools
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .config import RecognitionConfig
from .constants import Algorithm
from .detection import DetectorResult

logger = logging.getLogger(__name__)

NEUTRAL_VOTE = 0.5
STRONG_MAJORITY = 0.7
HIGH_CONFIDENCE_BOOST = 0.1
UNAVAILABLE_PENALTY = 0.1
MIN_PENALTY_FACTOR = 0.5
SINGLE_DETECTOR_DISCOUNT = 0.8
WEAK_BASE_DISCOUNT = 0.6
WEAK_OVERALL_CAP = 0.8


@dataclass(frozen=True)
class DetectorOutcomes:
    """One optional result per detector; ``None`` means it produced nothing."""

    brightness: DetectorResult | None = None
    color: DetectorResult | None = None
    edge: DetectorResult | None = None
    pattern: DetectorResult | None = None

    def get(self, algorithm: Algorithm) -> DetectorResult | None:
        return getattr(self, algorithm.value)

    def items(self) -> list[tuple[Algorithm, DetectorResult | None]]:
        return [(a, self.get(a)) for a in Algorithm]

    @classmethod
    def from_results(cls, results: Iterable[DetectorResult | None]) -> DetectorOutcomes:
        slots: dict[str, DetectorResult] = {}
        for result in results:
            if result is None:
                continue
            key = result.algorithm.value
            if key in slots:
                raise ValueError(f"Duplicate result for {key}")
            slots[key] = result
        return cls(**slots)


class DecisionRule(str, Enum):
    HIGH_CONFIDENCE = "high_confidence"
    STRONG_MAJORITY = "strong_majority"
    SINGLE_DETECTOR = "single_detector"
    WEAK_CONSENSUS = "weak_consensus"
    NO_EVIDENCE = "no_evidence"


@dataclass(frozen=True)
class ConsensusResult:
    selected: bool
    confidence: float
    supporting: frozenset[Algorithm]
    conflicting: frozenset[Algorithm]
    ambiguous: bool
    reliable: bool
    available: frozenset[Algorithm]
    weighted_votes: float
    agreement: float
    overall_confidence: float
    rule: DecisionRule

    @property
    def quality_score(self) -> float:
        n = len(self.available)
        support = len(self.supporting) / n if n else 0.0
        return (self.confidence + self.agreement + support + n / len(Algorithm)) / 4

    @property
    def needs_review(self) -> bool:
        return self.ambiguous or not self.reliable


def _clamp(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


class ConsensusEngine:
    def __init__(self, config: RecognitionConfig | None = None) -> None:
        self.config = config or RecognitionConfig()

    # -- steps ----------------------------------------------------------------

    def available(self, outcomes: DetectorOutcomes) -> dict[Algorithm, DetectorResult]:
        """Results that take part in the vote, with clamped confidences."""
        floor = self.config.thresholds.minimum_confidence
        out: dict[Algorithm, DetectorResult] = {}
        for algorithm, result in outcomes.items():
            if result is None:
                continue
            confidence = _clamp(result.confidence)
            if confidence < floor:
                logger.debug(
                    "%s below confidence floor (%.2f < %.2f)", algorithm.value, confidence, floor
                )
                continue
            out[algorithm] = DetectorResult(
                algorithm, result.selected, confidence, result.diagnostics
            )
        return out

    def weighted_votes(self, available: dict[Algorithm, DetectorResult]) -> float:
        weights = self.config.weights.renormalized(available)
        if not weights:
            return NEUTRAL_VOTE
        return sum(
            weights[a] * (r.confidence if r.selected else 1.0 - r.confidence)
            for a, r in available.items()
        )

    def overall_confidence(
        self, available: dict[Algorithm, DetectorResult], unavailable: int
    ) -> float:
        weights = self.config.weights.renormalized(available)
        if not weights:
            return 0.0
        overall = sum(weights[a] * r.confidence for a, r in available.items())
        high = sum(
            1
            for r in available.values()
            if r.confidence >= self.config.thresholds.high_confidence
        )
        if high >= 2:
            overall = min(1.0, overall * (1.0 + HIGH_CONFIDENCE_BOOST * high))
        overall *= max(MIN_PENALTY_FACTOR, 1.0 - UNAVAILABLE_PENALTY * unavailable)
        return overall

    @staticmethod
    def agreement(available: dict[Algorithm, DetectorResult]) -> float:
        results = list(available.values())
        if not results:
            return 0.0
        if len(results) == 1:
            return 1.0
        total = weight_sum = 0.0
        for a, b in itertools.combinations(results, 2):
            score = 0.7 * (a.selected == b.selected) + 0.3 * (
                1.0 - abs(a.confidence - b.confidence)
            )
            weight = (a.confidence + b.confidence) / 2
            total += score * weight
            weight_sum += weight
        return total / weight_sum if weight_sum > 0 else 0.0

    # -- fusion ---------------------------------------------------------------

    @staticmethod
    def _lean(weighted_votes: float, available: dict[Algorithm, DetectorResult]) -> bool:
        if len(available) == 1:
            return next(iter(available.values())).selected
        return weighted_votes > NEUTRAL_VOTE

    def fuse(self, outcomes: DetectorOutcomes) -> ConsensusResult:
        thresholds = self.config.thresholds
        available = self.available(outcomes)
        unavailable = len(Algorithm) - len(available)
        votes = self.weighted_votes(available)
        overall = self.overall_confidence(available, unavailable)
        agree = self.agreement(available)
        selected = self._lean(votes, available)

        high = [r for r in available.values() if r.confidence >= thresholds.high_confidence]
        supporting: frozenset[Algorithm] | None = None
        if not available:
            rule, confidence = DecisionRule.NO_EVIDENCE, 0.0
        elif overall >= thresholds.high_confidence and agree >= thresholds.consensus:
            rule, confidence = DecisionRule.HIGH_CONFIDENCE, min(overall, agree)
        elif votes > STRONG_MAJORITY or votes < 1.0 - STRONG_MAJORITY:
            rule = DecisionRule.STRONG_MAJORITY
            confidence = min(abs(votes - NEUTRAL_VOTE) * 2, overall)
        elif len(high) == 1 and len(available) <= 2:
            rule = DecisionRule.SINGLE_DETECTOR
            selected = high[0].selected
            confidence = SINGLE_DETECTOR_DISCOUNT * high[0].confidence
            # The decision rests on the adopted detector alone.
            supporting = frozenset({high[0].algorithm})
        else:
            rule = DecisionRule.WEAK_CONSENSUS
            base = abs(votes - NEUTRAL_VOTE) * 2
            confidence = min(WEAK_BASE_DISCOUNT * base, WEAK_OVERALL_CAP * overall)

        confidence = _clamp(confidence)
        if supporting is None:
            supporting = frozenset(a for a, r in available.items() if r.selected == selected)
        conflicting = frozenset(a for a, r in available.items() if r.selected != selected)

        ambiguous = (
            confidence < thresholds.consensus
            or agree < thresholds.consensus
            or abs(len(supporting) - len(conflicting)) <= 1
            or abs(votes - NEUTRAL_VOTE) < thresholds.ambiguous
        )
        reliable = (
            confidence >= thresholds.high_confidence
            and agree >= thresholds.consensus
            and len(supporting) >= 2
            and len(available) >= 3
        )

        return ConsensusResult(
            selected=selected,
            confidence=confidence,
            supporting=supporting,
            conflicting=conflicting,
            ambiguous=ambiguous,
            reliable=reliable,
            available=frozenset(available),
            weighted_votes=votes,
            agreement=agree,
            overall_confidence=overall,
            rule=rule,
        )

