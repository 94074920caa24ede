"""Normalized slot regions and the screenshot-backed region provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property, lru_cache

import cv2
import numpy as np

from .constants import MASK_RADIUS_FRACTION, REGION_SIZE
from .hexmath import PixelPoint, hex_mask
from .layout import UpgradeSlot

logger = logging.getLogger(__name__)


@lru_cache(maxsize=16)
def _polar_grid(height: int, width: int) -> tuple[np.ndarray, np.ndarray]:
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    dx = xs + 0.5 - width / 2
    dy = ys + 0.5 - height / 2
    dist = np.hypot(dx, dy)
    angle = np.arctan2(dy, dx)
    dist.setflags(write=False)
    angle.setflags(write=False)
    return dist, angle


@dataclass(frozen=True)
class NormalizedRegion:
    """Fixed-size BGR buffer for one slot plus its implicit hex mask.

    The buffer is made read-only on construction; detectors only ever read it.
    """

    pixels: np.ndarray
    slot_id: str = ""

    def __post_init__(self) -> None:
        arr = np.asarray(self.pixels)
        if arr.ndim == 2:
            arr = cv2.cvtColor(np.clip(arr, 0, 255).astype(np.uint8), cv2.COLOR_GRAY2BGR)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) BGR buffer, got shape {arr.shape}")
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)
        arr = np.array(arr, copy=True)
        arr.setflags(write=False)
        object.__setattr__(self, "pixels", arr)

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def center(self) -> PixelPoint:
        return PixelPoint(self.width / 2, self.height / 2)

    @property
    def min_side(self) -> int:
        return min(self.width, self.height)

    @property
    def mask_radius(self) -> float:
        return self.min_side * MASK_RADIUS_FRACTION

    @property
    def mask(self) -> np.ndarray:
        return hex_mask(self.height, self.width)

    @cached_property
    def pixel_count(self) -> int:
        return int(self.mask.sum())

    @cached_property
    def luminance(self) -> np.ndarray:
        """Per-pixel luminance in [0, 1] (Rec. 601 weights)."""
        gray = cv2.cvtColor(self.pixels.astype(np.float32), cv2.COLOR_BGR2GRAY)
        return gray / 255.0

    @property
    def masked_pixels(self) -> np.ndarray:
        return self.pixels[self.mask]

    @property
    def masked_luminance(self) -> np.ndarray:
        return self.luminance[self.mask]

    @property
    def polar(self) -> tuple[np.ndarray, np.ndarray]:
        """Distance and angle of every pixel centre from the region centre."""
        return _polar_grid(self.height, self.width)

    @cached_property
    def inner_mask(self) -> np.ndarray:
        """Mask pixels whose whole 3x3 neighbourhood lies inside the mask."""
        eroded = cv2.erode(self.mask.astype(np.uint8), np.ones((3, 3), np.uint8))
        return eroded.astype(bool)

    @cached_property
    def gradients(self) -> tuple[np.ndarray, np.ndarray]:
        """Sobel magnitude (clipped to 1) and direction of the luminance.

        Magnitude is zero wherever the 3x3 kernel would reach outside the
        mask.
        """
        gx = cv2.Sobel(self.luminance, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(self.luminance, cv2.CV_32F, 0, 1, ksize=3)
        magnitude = np.minimum(1.0, np.hypot(gx, gy))
        magnitude[~self.inner_mask] = 0.0
        return magnitude, np.arctan2(gy, gx)

    @property
    def contrast(self) -> float:
        values = self.masked_luminance
        return float(values.max() - values.min()) if values.size else 0.0


class ScreenshotRegionProvider:
    """Crops slot bounds out of an in-memory screenshot.

    A minimal region-extraction collaborator: crop, clamp to the frame and
    resize to a square buffer. No denoising or contrast work happens here.
    """

    def __init__(self, image: np.ndarray, size: int = REGION_SIZE) -> None:
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        self.image = image
        self.size = size

    def crop(self, slot: UpgradeSlot) -> NormalizedRegion:
        h, w = self.image.shape[:2]
        b = slot.bounds
        x0 = max(0, int(round(b.left)))
        y0 = max(0, int(round(b.top)))
        x1 = min(w, int(round(b.right)))
        y1 = min(h, int(round(b.bottom)))
        if x1 <= x0 or y1 <= y0:
            raise ValueError(f"Slot {slot.id} bounds fall outside the screenshot")
        crop = self.image[y0:y1, x0:x1]
        resized = cv2.resize(crop, (self.size, self.size), interpolation=cv2.INTER_AREA)
        return NormalizedRegion(resized, slot.id)

    async def extract(self, slot: UpgradeSlot) -> NormalizedRegion:
        return self.crop(slot)
