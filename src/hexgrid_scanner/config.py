"""Immutable recognition configuration.

Every tunable of the subsystem lives in one frozen ``RecognitionConfig``
handed to constructors. Calibration produces a new instance instead of
mutating the old one, so a batch in flight always sees a consistent view.

Values are validated on construction; out-of-range input raises
:class:`~hexgrid_scanner.errors.ConfigurationError` instead of being
clamped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import numpy as np

from .constants import (
    HEX_RADIUS,
    REFERENCE_HEIGHT,
    REFERENCE_WIDTH,
    SELECTED_PROFILES,
    UNSELECTED_PROFILES,
    Algorithm,
    CoreUpgrade,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_WEIGHT_TOLERANCE = 1e-6


def _check_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must lie in [0, 1], got {value!r}")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectorWeights:
    """Voting weight of each detector. Must sum to 1."""

    brightness: float = 0.30
    color: float = 0.25
    edge: float = 0.25
    pattern: float = 0.20

    def __post_init__(self) -> None:
        for algorithm in Algorithm:
            _check_unit(f"{algorithm.value} weight", self.weight(algorithm))
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            raise ConfigurationError(f"Detector weights must sum to 1, got {total:.6f}")

    def weight(self, algorithm: Algorithm) -> float:
        return getattr(self, algorithm.value)

    def as_dict(self) -> dict[Algorithm, float]:
        return {a: self.weight(a) for a in Algorithm}

    def renormalized(self, available: Iterable[Algorithm]) -> dict[Algorithm, float]:
        """Weights restricted to *available* detectors, rescaled to sum to 1.

        Detectors whose weights are all zero share the vote equally.
        Returns an empty dict when nothing is available.
        """
        chosen = list(dict.fromkeys(available))
        if not chosen:
            return {}
        total = sum(self.weight(a) for a in chosen)
        if total <= 0:
            return {a: 1.0 / len(chosen) for a in chosen}
        return {a: self.weight(a) / total for a in chosen}

    @classmethod
    def from_mapping(cls, weights: Mapping[Algorithm, float]) -> DetectorWeights:
        """Build weights from raw (possibly unnormalized) values."""
        total = sum(weights.values())
        if total <= 0:
            raise ConfigurationError("Cannot normalize weights that sum to zero")
        return cls(**{a.value: weights[a] / total for a in Algorithm})


@dataclass(frozen=True)
class ConsensusThresholds:
    minimum_confidence: float = 0.3
    high_confidence: float = 0.8
    consensus: float = 0.6
    ambiguous: float = 0.1

    def __post_init__(self) -> None:
        for f in fields(self):
            _check_unit(f.name, getattr(self, f.name))
        if self.minimum_confidence > self.high_confidence:
            raise ConfigurationError(
                "minimum_confidence must not exceed high_confidence "
                f"({self.minimum_confidence} > {self.high_confidence})"
            )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LayoutConfig:
    """Zone layout constants in reference-resolution units."""

    reference_width: int = REFERENCE_WIDTH
    reference_height: int = REFERENCE_HEIGHT
    hex_radius: float = HEX_RADIUS
    weapon_offset: tuple[float, float] = (0.0, 20.0)
    body_offset: tuple[float, float] = (-60.0, -40.0)
    shield_offset: tuple[float, float] = (60.0, -40.0)
    grid_width: int = 4
    regular_start_offset: float = 100.0
    max_regular_rows: int = 10
    # Allowed bounds overlap between two slots, as a fraction of the slot side.
    overlap_margin: float = 0.15

    def __post_init__(self) -> None:
        _check_positive("reference_width", self.reference_width)
        _check_positive("reference_height", self.reference_height)
        _check_positive("hex_radius", self.hex_radius)
        _check_positive("grid_width", self.grid_width)
        _check_positive("max_regular_rows", self.max_regular_rows)
        _check_unit("overlap_margin", self.overlap_margin)

    def core_offset(self, upgrade: CoreUpgrade) -> tuple[float, float]:
        return getattr(self, f"{upgrade.value}_offset")


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BrightnessConfig:
    selected_min: float = 0.6
    unselected_max: float = 0.45
    ambiguous_range: float = 0.15
    contrast_min: float = 0.1

    def __post_init__(self) -> None:
        for f in fields(self):
            _check_unit(f.name, getattr(self, f.name))
        if self.unselected_max > self.selected_min:
            raise ConfigurationError(
                "unselected_max must not exceed selected_min "
                f"({self.unselected_max} > {self.selected_min})"
            )

    @property
    def midpoint(self) -> float:
        return (self.selected_min + self.unselected_max) / 2


@dataclass(frozen=True)
class ColorProfile:
    """Exemplar colour pair of one visual state, stored as (B, G, R)."""

    name: str
    primary: tuple[int, int, int]
    secondary: tuple[int, int, int]


def _profiles(raw) -> tuple[ColorProfile, ...]:
    return tuple(ColorProfile(name, primary, secondary) for name, primary, secondary in raw)


@dataclass(frozen=True)
class ColorConfig:
    dominant_colors: int = 5
    cluster_distance: float = 30.0
    sample_step: int = 2
    selected_profiles: tuple[ColorProfile, ...] = _profiles(SELECTED_PROFILES)
    unselected_profiles: tuple[ColorProfile, ...] = _profiles(UNSELECTED_PROFILES)

    def __post_init__(self) -> None:
        _check_positive("dominant_colors", self.dominant_colors)
        _check_positive("cluster_distance", self.cluster_distance)
        _check_positive("sample_step", self.sample_step)
        if not self.selected_profiles or not self.unselected_profiles:
            raise ConfigurationError("Both colour profile libraries must be non-empty")


@dataclass(frozen=True)
class EdgeConfig:
    edge_threshold: float = 0.3
    selection_border_intensity: float = 0.4
    corner_radius: int = 5

    def __post_init__(self) -> None:
        _check_unit("edge_threshold", self.edge_threshold)
        _check_unit("selection_border_intensity", self.selection_border_intensity)
        _check_positive("corner_radius", self.corner_radius)


@dataclass(frozen=True)
class PatternConfig:
    correlation_threshold: float = 0.7
    rotation_offsets: tuple[float, ...] = (-5.0, -2.0, 2.0, 5.0)
    # Grayscale [0, 1] buffers learned during calibration; never persisted.
    learned_selected: tuple[np.ndarray, ...] = field(default=(), compare=False, repr=False)
    learned_unselected: tuple[np.ndarray, ...] = field(
        default=(), compare=False, repr=False
    )

    def __post_init__(self) -> None:
        _check_unit("correlation_threshold", self.correlation_threshold)


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecognitionConfig:
    weights: DetectorWeights = field(default_factory=DetectorWeights)
    thresholds: ConsensusThresholds = field(default_factory=ConsensusThresholds)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    brightness: BrightnessConfig = field(default_factory=BrightnessConfig)
    color: ColorConfig = field(default_factory=ColorConfig)
    edge: EdgeConfig = field(default_factory=EdgeConfig)
    pattern: PatternConfig = field(default_factory=PatternConfig)
    # Confidence reported by a detector that could not judge its region.
    confidence_floor: float = 0.1
    min_pixels: int = 50
    batch_size: int = 10
    detector_timeout: float = 2.0

    def __post_init__(self) -> None:
        _check_unit("confidence_floor", self.confidence_floor)
        _check_positive("min_pixels", self.min_pixels)
        _check_positive("batch_size", self.batch_size)
        _check_positive("detector_timeout", self.detector_timeout)


# ---------------------------------------------------------------------------
# JSON persistence
# ---------------------------------------------------------------------------

_SECTIONS: dict[str, type] = {
    "weights": DetectorWeights,
    "thresholds": ConsensusThresholds,
    "layout": LayoutConfig,
    "brightness": BrightnessConfig,
    "color": ColorConfig,
    "edge": EdgeConfig,
    "pattern": PatternConfig,
}
_RUNTIME_ONLY = {"learned_selected", "learned_unselected"}


def _section_to_dict(section: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(section):
        if f.name in _RUNTIME_ONLY:
            continue
        value = getattr(section, f.name)
        if f.name.endswith("_profiles"):
            value = [
                {"name": p.name, "primary": list(p.primary), "secondary": list(p.secondary)}
                for p in value
            ]
        elif isinstance(value, tuple):
            value = list(value)
        out[f.name] = value
    return out


def _section_from_dict(cls: type, raw: Mapping[str, Any]) -> Any:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{cls.__name__} section must be a JSON object")
    known = {f.name for f in fields(cls)} - _RUNTIME_ONLY
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        if key.endswith("_profiles"):
            value = tuple(
                ColorProfile(p["name"], tuple(p["primary"]), tuple(p["secondary"]))
                for p in value
            )
        elif isinstance(value, list):
            value = tuple(value)
        kwargs[key] = value
    return cls(**kwargs)


def config_to_dict(config: RecognitionConfig) -> dict[str, Any]:
    data: dict[str, Any] = {
        name: _section_to_dict(getattr(config, name)) for name in _SECTIONS
    }
    for name in ("confidence_floor", "min_pixels", "batch_size", "detector_timeout"):
        data[name] = getattr(config, name)
    return data


def config_from_dict(data: Mapping[str, Any]) -> RecognitionConfig:
    """Build a config from a (partial) mapping; absent keys keep defaults."""
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key in _SECTIONS:
            kwargs[key] = _section_from_dict(_SECTIONS[key], value)
        elif key in ("confidence_floor", "min_pixels", "batch_size", "detector_timeout"):
            kwargs[key] = value
        else:
            raise ConfigurationError(f"Unknown configuration key: {key}")
    return RecognitionConfig(**kwargs)


def load_config(path: Path) -> RecognitionConfig:
    """Read a JSON configuration written by :func:`save_config`.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ConfigurationError: If the file holds unknown keys or invalid values.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Malformed configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {path} must hold a JSON object, got {type(data).__name__}"
        )
    logger.debug("Loaded configuration from %s", path)
    return config_from_dict(data)


def save_config(config: RecognitionConfig, path: Path) -> None:
    """Atomically write *config* to *path* as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(config_to_dict(config), indent=2) + "\n")
    tmp.replace(path)
