"""Seeded synthetic icons, regions and screenshots.

Everything here is deterministic for a given ``numpy.random.Generator``
seed. It backs the test-suite and the ``synth`` CLI command; nothing in
the detection path depends on it.
"""

from __future__ import annotations

from collections.abc import Iterable

import cv2
import numpy as np

from .constants import MASK_RADIUS_FRACTION, REGION_SIZE
from .layout import CoordinateMap

# (B, G, R)
SELECTED_FILL = (120, 180, 200)
UNSELECTED_FILL = (100, 90, 80)
BORDER_COLOR = (240, 240, 240)
BACKGROUND = (30, 30, 30)


def _normalized_distance(size: int) -> np.ndarray:
    ys, xs = np.mgrid[0:size, 0:size].astype(np.float32)
    dist = np.hypot(xs + 0.5 - size / 2, ys + 0.5 - size / 2)
    return np.clip(dist / (size * MASK_RADIUS_FRACTION), 0.0, 1.0)


def gray_for_luminance(luminance: float) -> tuple[int, int, int]:
    value = int(round(np.clip(luminance, 0.0, 1.0) * 255))
    return value, value, value


def hex_outline(size: int, radius_fraction: float) -> np.ndarray:
    """Integer vertices of a pointy-top hexagon centred in a *size* square."""
    radius = size * MASK_RADIUS_FRACTION * radius_fraction
    angles = np.pi / 2 + np.arange(6) * np.pi / 3
    pts = np.stack(
        [size / 2 + radius * np.cos(angles), size / 2 + radius * np.sin(angles)], axis=1
    )
    return np.round(pts).astype(np.int32)


def add_noise(pixels: np.ndarray, sigma: float, rng: np.random.Generator) -> np.ndarray:
    """Add Gaussian noise with standard deviation *sigma* (in 0-255 units)."""
    noisy = pixels.astype(np.float32) + rng.normal(0.0, sigma, pixels.shape)
    return np.clip(noisy, 0, 255).astype(np.uint8)


def uniform_pixels(bgr: tuple[int, int, int], size: int = REGION_SIZE) -> np.ndarray:
    return np.full((size, size, 3), bgr, dtype=np.uint8)


def glow_pixels(
    bgr: tuple[int, int, int] = SELECTED_FILL,
    size: int = REGION_SIZE,
    strength: float = 0.35,
) -> np.ndarray:
    """Fill colour brightened toward the centre."""
    gain = 0.9 + strength * (1.0 - _normalized_distance(size))
    pixels = np.asarray(bgr, dtype=np.float32)[None, None, :] * gain[..., None]
    return np.clip(pixels, 0, 255).astype(np.uint8)


def bordered_pixels(
    fill: tuple[int, int, int],
    border: tuple[int, int, int] = BORDER_COLOR,
    size: int = REGION_SIZE,
    radius_fraction: float = 0.8,
    thickness: int = 3,
) -> np.ndarray:
    pixels = uniform_pixels(fill, size)
    cv2.polylines(pixels, [hex_outline(size, radius_fraction)], True, border, thickness)
    return pixels


def render_icon(
    selected: bool, size: int = REGION_SIZE, rng: np.random.Generator | None = None
) -> np.ndarray:
    """A square icon tile: glowing and framed when selected, flat grey otherwise."""
    if selected:
        pixels = glow_pixels(SELECTED_FILL, size)
        cv2.polylines(pixels, [hex_outline(size, 0.8)], True, BORDER_COLOR, 2)
    else:
        pixels = uniform_pixels(UNSELECTED_FILL, size)
    if rng is not None:
        pixels = add_noise(pixels, 3.0, rng)
    return pixels


def muted_template(rng: np.random.Generator, size: int = REGION_SIZE) -> np.ndarray:
    """Low-contrast noisy grayscale template in [0, 1]."""
    base = 0.3 + 0.04 * rng.standard_normal((size, size))
    return np.clip(base, 0.0, 1.0).astype(np.float32)


def synthetic_screenshot(
    coordinate_map: CoordinateMap,
    width: int,
    height: int,
    selected_ids: Iterable[str],
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Paint every slot of *coordinate_map* onto a dark frame."""
    chosen = set(selected_ids)
    image = np.full((height, width, 3), BACKGROUND, dtype=np.uint8)
    for slot in coordinate_map:
        b = slot.bounds
        x0, y0 = int(round(b.left)), int(round(b.top))
        x1, y1 = int(round(b.right)), int(round(b.bottom))
        tile = render_icon(slot.id in chosen, REGION_SIZE, rng)
        image[y0:y1, x0:x1] = cv2.resize(tile, (x1 - x0, y1 - y0), interpolation=cv2.INTER_AREA)
    return image
