"""Reference layout constants and shared enumerations.

All pixel distances are expressed in reference-resolution units
(1920x1080) and scaled by the estimated scale factor at runtime.
"""

from __future__ import annotations

import math
from enum import Enum

# Canonical layout every screenshot is measured against.
REFERENCE_WIDTH = 1920
REFERENCE_HEIGHT = 1080
HEX_RADIUS = 24.0

# Side of the square buffer every slot region is normalized to.
REGION_SIZE = 48

# Fraction of the region's shorter side used as the hex mask radius.
MASK_RADIUS_FRACTION = 0.4

SQRT3 = math.sqrt(3.0)

# (width, height) -> scale factor relative to the reference layout
SUPPORTED_RESOLUTIONS: dict[tuple[int, int], float] = {
    (1920, 1080): 1.0,
    (2560, 1440): 4.0 / 3.0,
    (3840, 2160): 2.0,
}


class Zone(str, Enum):
    CORE = "core"
    REGULAR = "regular"


class CoreUpgrade(str, Enum):
    WEAPON = "weapon"
    BODY = "body"
    SHIELD = "shield"


class Algorithm(str, Enum):
    """The four independent detectors, in voting order."""

    BRIGHTNESS = "brightness"
    COLOR = "color"
    EDGE = "edge"
    PATTERN = "pattern"


# Reference colour exemplars as (B, G, R), primary then secondary.
SELECTED_PROFILES: tuple[tuple[str, tuple[int, int, int], tuple[int, int, int]], ...] = (
    ("golden", (120, 180, 200), (100, 140, 160)),
    ("green", (140, 200, 180), (110, 160, 140)),
    ("purple", (200, 170, 190), (160, 130, 150)),
)
UNSELECTED_PROFILES: tuple[tuple[str, tuple[int, int, int], tuple[int, int, int]], ...] = (
    ("gray", (100, 90, 80), (80, 70, 60)),
    ("blue_gray", (90, 80, 70), (70, 60, 50)),
    ("brown_gray", (70, 80, 90), (50, 60, 70)),
)
