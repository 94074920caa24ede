"""Full recognition pipeline: scale → layout → regions → detectors → consensus."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np

from .config import RecognitionConfig
from .consensus import ConsensusEngine, ConsensusResult, DetectorOutcomes
from .detect_brightness import BrightnessDetector
from .detect_color import ColorDetector
from .detect_edge import EdgeDetector
from .detect_pattern import PatternDetector
from .detection import Detector, DetectorResult
from .layout import CoordinateMap, UpgradeSlot, ZoneLayoutMapper
from .regions import NormalizedRegion, ScreenshotRegionProvider
from .scale import ScaleEstimate, ScaleEstimator

logger = logging.getLogger(__name__)

HIGH_BAND = 0.8
MEDIUM_BAND = 0.5


class RegionProvider(Protocol):
    """Supplies the normalized pixel buffer for a slot."""

    async def extract(self, slot: UpgradeSlot) -> NormalizedRegion: ...


@dataclass(frozen=True)
class SlotAnalysis:
    """Everything computed for one slot."""

    slot: UpgradeSlot
    outcomes: DetectorOutcomes
    consensus: ConsensusResult
    region: NormalizedRegion | None = None


@dataclass(frozen=True)
class ReportStats:
    total: int = 0
    selected: int = 0
    unselected: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    ambiguous: int = 0
    reliable: int = 0
    average_confidence: float = 0.0

    @classmethod
    def from_results(cls, results: Sequence[ConsensusResult]) -> ReportStats:
        if not results:
            return cls()
        high = sum(1 for r in results if r.confidence > HIGH_BAND)
        medium = sum(1 for r in results if MEDIUM_BAND < r.confidence <= HIGH_BAND)
        selected = sum(1 for r in results if r.selected)
        return cls(
            total=len(results),
            selected=selected,
            unselected=len(results) - selected,
            high_confidence=high,
            medium_confidence=medium,
            low_confidence=len(results) - high - medium,
            ambiguous=sum(1 for r in results if r.ambiguous),
            reliable=sum(1 for r in results if r.reliable),
            average_confidence=sum(r.confidence for r in results) / len(results),
        )


@dataclass
class SelectionReport:
    """Per-slot decisions for one screenshot, in coordinate-map order."""

    analyses: dict[str, SlotAnalysis] = field(default_factory=dict)
    estimate: ScaleEstimate | None = None

    @property
    def results(self) -> dict[str, ConsensusResult]:
        return {slot_id: a.consensus for slot_id, a in self.analyses.items()}

    @property
    def stats(self) -> ReportStats:
        return ReportStats.from_results([a.consensus for a in self.analyses.values()])

    @property
    def selected_ids(self) -> list[str]:
        return [slot_id for slot_id, a in self.analyses.items() if a.consensus.selected]

    @property
    def review_ids(self) -> list[str]:
        """Slots whose decision should be confirmed by a person."""
        return [slot_id for slot_id, a in self.analyses.items() if a.consensus.needs_review]


def default_detectors(config: RecognitionConfig) -> tuple[Detector, ...]:
    return (
        BrightnessDetector(config),
        ColorDetector(config),
        EdgeDetector(config),
        PatternDetector(config),
    )


class RecognitionOrchestrator:
    """Runs every detector over every slot of a coordinate map.

    Slots are processed concurrently, at most ``config.batch_size`` at a
    time. For each slot the detectors fan out to worker threads and are
    joined before consensus; a detector that raises or exceeds
    ``config.detector_timeout`` counts as unavailable for that slot only.

    Detectors run on a thread pool owned by the orchestrator. A detector
    that times out cannot be interrupted and keeps its worker thread until
    it returns; :meth:`close` releases the pool without waiting for such
    threads, so a runaway detector never blocks :meth:`run`.
    """

    def __init__(
        self,
        region_provider: RegionProvider,
        config: RecognitionConfig | None = None,
        detectors: Sequence[Detector] | None = None,
        engine: ConsensusEngine | None = None,
        keep_regions: bool = False,
    ) -> None:
        self.config = config or RecognitionConfig()
        self.region_provider = region_provider
        if detectors is None:
            detectors = default_detectors(self.config)
        self.detectors = tuple(detectors)
        self.engine = engine or ConsensusEngine(self.config)
        self.keep_regions = keep_regions
        self._executor: ThreadPoolExecutor | None = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(thread_name_prefix="hexgrid-detector")
        return self._executor

    def close(self) -> None:
        """Shut the detector pool down without joining abandoned workers."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    async def _run_detector(
        self, detector: Detector, region: NormalizedRegion
    ) -> DetectorResult | None:
        name = detector.algorithm.value
        try:
            loop = asyncio.get_running_loop()
            return await asyncio.wait_for(
                loop.run_in_executor(self._pool(), detector.analyze, region),
                self.config.detector_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s detector timed out on slot %s", name, region.slot_id)
        except Exception:
            logger.warning("%s detector crashed on slot %s", name, region.slot_id, exc_info=True)
        return None

    async def analyze_slot(self, slot: UpgradeSlot) -> SlotAnalysis:
        try:
            region = await self.region_provider.extract(slot)
        except Exception:
            logger.warning("Region extraction failed for slot %s", slot.id, exc_info=True)
            outcomes = DetectorOutcomes()
            return SlotAnalysis(slot, outcomes, self.engine.fuse(outcomes))

        results = await asyncio.gather(*(self._run_detector(d, region) for d in self.detectors))
        outcomes = DetectorOutcomes.from_results(results)
        consensus = self.engine.fuse(outcomes)
        logger.debug(
            "Slot %s: selected=%s conf=%.2f rule=%s",
            slot.id,
            consensus.selected,
            consensus.confidence,
            consensus.rule.value,
        )
        return SlotAnalysis(slot, outcomes, consensus, region if self.keep_regions else None)

    async def analyze(
        self, coordinate_map: CoordinateMap, stop: asyncio.Event | None = None
    ) -> SelectionReport:
        """Analyze every slot and assemble the report.

        Setting *stop* lets slots already in progress finish; slots not yet
        started are skipped and absent from the report.
        """
        semaphore = asyncio.Semaphore(self.config.batch_size)

        async def bounded(slot: UpgradeSlot) -> SlotAnalysis | None:
            async with semaphore:
                if stop is not None and stop.is_set():
                    return None
                return await self.analyze_slot(slot)

        analyses = await asyncio.gather(*(bounded(slot) for slot in coordinate_map))
        report = SelectionReport(estimate=coordinate_map.estimate)
        for analysis in analyses:
            if analysis is not None:
                report.analyses[analysis.slot.id] = analysis

        skipped = len(coordinate_map) - len(report.analyses)
        stats = report.stats
        logger.info(
            "Analyzed %d slots (%d skipped): %d selected, %d need review",
            stats.total,
            skipped,
            stats.selected,
            len(report.review_ids),
        )
        return report

    def run(
        self, coordinate_map: CoordinateMap, stop: asyncio.Event | None = None
    ) -> SelectionReport:
        """Synchronous :meth:`analyze` on a fresh event loop; closes the pool."""
        try:
            return asyncio.run(self.analyze(coordinate_map, stop))
        finally:
            self.close()


def recognize_screenshot(
    image: np.ndarray,
    config: RecognitionConfig | None = None,
    keep_regions: bool = False,
    structural: bool = False,
) -> SelectionReport:
    """Synchronous convenience: run the whole flow on a BGR screenshot.

    Structural scale inference reads the pixels for a grid pitch and is only
    used when *structural* is set; otherwise the frame size alone decides.
    """
    config = config or RecognitionConfig()
    height, width = image.shape[:2]
    pixels = image if structural else None
    estimate = ScaleEstimator(config.layout).estimate(width, height, pixels)
    coordinate_map = ZoneLayoutMapper(config.layout).map(estimate, width, height)
    orchestrator = RecognitionOrchestrator(
        ScreenshotRegionProvider(image), config, keep_regions=keep_regions
    )
    return orchestrator.run(coordinate_map)


def load_screenshot(image_path: Path) -> np.ndarray:
    """Read a screenshot as a BGR array."""
    image = cv2.imread(str(image_path))
    if image is None:
        raise FileNotFoundError(f"Could not load image: {image_path}")
    return image
