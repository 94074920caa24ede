"""Shared fixtures."""

import numpy as np
import pytest

from hexgrid_scanner.layout import CoordinateMap, ZoneLayoutMapper
from hexgrid_scanner.scale import ScaleEstimator


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def reference_map() -> CoordinateMap:
    """Coordinate map of a 1920x1080 screenshot."""
    estimate = ScaleEstimator().estimate(1920, 1080)
    return ZoneLayoutMapper().map(estimate, 1920, 1080)
