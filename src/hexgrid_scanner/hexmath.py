"""Flat-top hexagon lattice geometry.

Axial coordinates ``(q, r)`` address the honeycomb; the implicit third
cube coordinate is ``s = -q - r``. All conversions are pure functions.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import numpy as np

from .constants import MASK_RADIUS_FRACTION, SQRT3


@dataclass(frozen=True)
class AxialCoordinate:
    q: int
    r: int

    @property
    def s(self) -> int:
        return -self.q - self.r

    def __add__(self, other: AxialCoordinate) -> AxialCoordinate:
        return AxialCoordinate(self.q + other.q, self.r + other.r)

    def __str__(self) -> str:
        return f"{self.q},{self.r}"


@dataclass(frozen=True)
class PixelPoint:
    x: float
    y: float

    def offset(self, dx: float, dy: float) -> PixelPoint:
        return PixelPoint(self.x + dx, self.y + dy)


# Neighbour directions, counter-clockwise starting east.
DIRECTIONS = (
    AxialCoordinate(1, 0),
    AxialCoordinate(1, -1),
    AxialCoordinate(0, -1),
    AxialCoordinate(-1, 0),
    AxialCoordinate(-1, 1),
    AxialCoordinate(0, 1),
)


def axial_to_pixel(q: int, r: int, hex_radius: float, origin: PixelPoint) -> PixelPoint:
    """Centre of hex ``(q, r)`` for a lattice anchored at *origin*."""
    x = hex_radius * (1.5 * q) + origin.x
    y = hex_radius * (SQRT3 / 2 * q + SQRT3 * r) + origin.y
    return PixelPoint(x, y)


def hex_round(q: float, r: float) -> AxialCoordinate:
    """Round fractional axial coordinates to the containing hex.

    Each cube component is rounded independently; the one with the largest
    rounding error is rebuilt from the other two so that ``q + r + s == 0``.
    """
    s = -q - r
    rq, rr, rs = round(q), round(r), round(s)
    dq, dr, ds = abs(rq - q), abs(rr - r), abs(rs - s)

    if dq > dr and dq > ds:
        rq = -rr - rs
    elif dr > ds:
        rr = -rq - rs
    return AxialCoordinate(int(rq), int(rr))


def pixel_to_axial(point: PixelPoint, hex_radius: float, origin: PixelPoint) -> AxialCoordinate:
    """Inverse of :func:`axial_to_pixel`, snapped to the nearest hex."""
    dx = point.x - origin.x
    dy = point.y - origin.y
    q = (2.0 / 3.0 * dx) / hex_radius
    r = (-1.0 / 3.0 * dx + SQRT3 / 3.0 * dy) / hex_radius
    return hex_round(q, r)


def hex_distance(a: AxialCoordinate, b: AxialCoordinate) -> int:
    dq = a.q - b.q
    dr = a.r - b.r
    return (abs(dq) + abs(dq + dr) + abs(dr)) // 2


def hex_ring(center: AxialCoordinate, radius: int) -> list[AxialCoordinate]:
    """Hexes at exactly *radius* steps from *center*, walking the ring once."""
    if radius < 0:
        raise ValueError(f"radius must be non-negative, got {radius}")
    if radius == 0:
        return [center]

    hexes = []
    cur = AxialCoordinate(
        center.q + DIRECTIONS[4].q * radius, center.r + DIRECTIONS[4].r * radius
    )
    for direction in DIRECTIONS:
        for _ in range(radius):
            hexes.append(cur)
            cur = cur + direction
    return hexes


def hex_spiral(center: AxialCoordinate, radius: int) -> list[AxialCoordinate]:
    """All hexes within *radius* of *center*, ring by ring."""
    out: list[AxialCoordinate] = []
    for k in range(radius + 1):
        out.extend(hex_ring(center, k))
    return out


def is_in_hex_shape(local_x: float, local_y: float, radius: float) -> bool:
    """Cheap hexagon membership for a point relative to the hex centre.

    Three half-plane tests on absolute offsets, so the shape is symmetric
    under mirroring in either axis.
    """
    dx = abs(local_x)
    dy = abs(local_y)
    return dx <= radius * SQRT3 / 2 and dy <= radius and dx / SQRT3 + dy <= radius


@lru_cache(maxsize=16)
def _hex_mask_cached(height: int, width: int) -> np.ndarray:
    radius = min(width, height) * MASK_RADIUS_FRACTION
    # Pixel centres, so the mask maps onto itself under a 180-degree turn.
    ys, xs = np.mgrid[0:height, 0:width]
    dx = np.abs(xs + 0.5 - width / 2)
    dy = np.abs(ys + 0.5 - height / 2)
    mask = (dx <= radius * SQRT3 / 2) & (dy <= radius) & (dx / SQRT3 + dy <= radius)
    mask.setflags(write=False)
    return mask


def hex_mask(height: int, width: int) -> np.ndarray:
    """Boolean validity mask of shape ``(height, width)`` for a slot region."""
    return _hex_mask_cached(int(height), int(width))
