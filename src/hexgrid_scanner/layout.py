"""Map a scale estimate onto per-icon slots for both screen zones.

The core zone always holds the three fixed upgrades (weapon, body, shield)
at constant offsets from the grid origin. The regular zone is a honeycomb
``grid_width`` columns wide that starts a fixed vertical gap below the
grid origin and grows row by row until the next row would leave the frame
(or ``max_regular_rows`` is reached).
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .config import LayoutConfig
from .constants import SQRT3, CoreUpgrade, Zone
from .errors import LayoutError
from .hexmath import AxialCoordinate, PixelPoint, axial_to_pixel, pixel_to_axial
from .scale import ScaleEstimate

logger = logging.getLogger(__name__)

CORE_ORDER = (CoreUpgrade.WEAPON, CoreUpgrade.BODY, CoreUpgrade.SHIELD)


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @classmethod
    def centered(cls, center: PixelPoint, side: float) -> Rect:
        return cls(center.x - side / 2, center.y - side / 2, side, side)

    def contains(self, point: PixelPoint) -> bool:
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom

    def within(self, width: float, height: float) -> bool:
        return self.left >= 0 and self.top >= 0 and self.right <= width and self.bottom <= height

    def overlap(self, other: Rect) -> tuple[float, float]:
        """Depth of overlap along x and y (negative when apart)."""
        ox = min(self.right, other.right) - max(self.left, other.left)
        oy = min(self.bottom, other.bottom) - max(self.top, other.top)
        return ox, oy


@dataclass(frozen=True)
class UpgradeSlot:
    id: str
    zone: Zone
    identity: CoreUpgrade | AxialCoordinate
    bounds: Rect
    center: PixelPoint


def core_slot_id(upgrade: CoreUpgrade) -> str:
    return f"{Zone.CORE.value}:{upgrade.value}"


def regular_slot_id(coord: AxialCoordinate) -> str:
    return f"{Zone.REGULAR.value}:{coord}"


class CoordinateMap:
    """Read-only, ordered collection of slots for one screenshot."""

    def __init__(
        self,
        slots: Iterable[UpgradeSlot],
        estimate: ScaleEstimate,
        hex_radius: float,
        regular_origin: PixelPoint,
    ) -> None:
        self._slots: dict[str, UpgradeSlot] = {}
        for slot in slots:
            if slot.id in self._slots:
                raise LayoutError(f"Duplicate slot id: {slot.id}")
            self._slots[slot.id] = slot
        self.estimate = estimate
        self.hex_radius = hex_radius
        self.regular_origin = regular_origin

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[UpgradeSlot]:
        return iter(self._slots.values())

    def __contains__(self, slot_id: object) -> bool:
        return slot_id in self._slots

    def __getitem__(self, slot_id: str) -> UpgradeSlot:
        return self._slots[slot_id]

    @property
    def ids(self) -> list[str]:
        return list(self._slots)

    def zone(self, zone: Zone) -> list[UpgradeSlot]:
        return [s for s in self._slots.values() if s.zone is zone]

    @property
    def core_slots(self) -> list[UpgradeSlot]:
        return self.zone(Zone.CORE)

    @property
    def regular_slots(self) -> list[UpgradeSlot]:
        return self.zone(Zone.REGULAR)

    def slot_at(self, point: PixelPoint) -> UpgradeSlot | None:
        """Slot under *point*, or ``None`` if the point hits no slot."""
        for slot in self.core_slots:
            if slot.bounds.contains(point):
                return slot
        coord = pixel_to_axial(point, self.hex_radius, self.regular_origin)
        return self._slots.get(regular_slot_id(coord))


class ZoneLayoutMapper:
    def __init__(self, layout: LayoutConfig | None = None) -> None:
        self.layout = layout or LayoutConfig()

    def map(self, estimate: ScaleEstimate, width: int, height: int) -> CoordinateMap:
        """Enumerate every slot of both zones.

        Raises:
            LayoutError: On degenerate dimensions, a core slot outside the
                frame, an empty regular zone, or overlapping slots.
        """
        if width <= 0 or height <= 0:
            raise LayoutError(f"Degenerate screenshot dimensions {width}x{height}")
        if estimate.scale_factor <= 0:
            raise LayoutError(f"Non-positive scale factor {estimate.scale_factor}")

        radius = self.layout.hex_radius * estimate.scale_factor
        side = SQRT3 * radius

        core = self._core_slots(estimate, side, width, height)
        regular_origin = self.regular_origin(estimate)
        regular = self._regular_slots(regular_origin, radius, side, width, height)
        if not regular:
            raise LayoutError(
                f"No regular-zone row fits in a {width}x{height} frame "
                f"(scale {estimate.scale_factor:.3f})"
            )

        slots = core + regular
        self._check_overlaps(slots, side)
        logger.debug(
            "Mapped %d core + %d regular slots (scale %.3f, %s)",
            len(core),
            len(regular),
            estimate.scale_factor,
            estimate.method,
        )
        return CoordinateMap(slots, estimate, radius, regular_origin)

    def regular_origin(self, estimate: ScaleEstimate) -> PixelPoint:
        """Centre of regular hex ``(0, 0)``: the left-most column of the band."""
        radius = self.layout.hex_radius * estimate.scale_factor
        band_half_width = 1.5 * radius * (self.layout.grid_width - 1) / 2
        return estimate.grid_origin.offset(
            -band_half_width, self.layout.regular_start_offset * estimate.scale_factor
        )

    # -- zones ----------------------------------------------------------------

    def _core_slots(
        self, estimate: ScaleEstimate, side: float, width: int, height: int
    ) -> list[UpgradeSlot]:
        slots = []
        for upgrade in CORE_ORDER:
            dx, dy = self.layout.core_offset(upgrade)
            center = estimate.grid_origin.offset(
                dx * estimate.scale_factor, dy * estimate.scale_factor
            )
            bounds = Rect.centered(center, side)
            if not bounds.within(width, height):
                raise LayoutError(
                    f"Core slot {upgrade.value} at ({center.x:.1f}, {center.y:.1f}) "
                    f"falls outside the {width}x{height} frame"
                )
            slots.append(
                UpgradeSlot(core_slot_id(upgrade), Zone.CORE, upgrade, bounds, center)
            )
        return slots

    def _regular_row(
        self, row: int, origin: PixelPoint, radius: float, side: float
    ) -> list[UpgradeSlot]:
        slots = []
        for q in range(self.layout.grid_width):
            # even-q offset layout: every column's row ``row`` sits at r = row - q // 2
            coord = AxialCoordinate(q, row - q // 2)
            center = axial_to_pixel(coord.q, coord.r, radius, origin)
            slots.append(
                UpgradeSlot(
                    regular_slot_id(coord),
                    Zone.REGULAR,
                    coord,
                    Rect.centered(center, side),
                    center,
                )
            )
        return slots

    def _regular_slots(
        self, origin: PixelPoint, radius: float, side: float, width: int, height: int
    ) -> list[UpgradeSlot]:
        slots: list[UpgradeSlot] = []
        for row in range(self.layout.max_regular_rows):
            candidates = self._regular_row(row, origin, radius, side)
            if not all(s.bounds.within(width, height) for s in candidates):
                logger.debug("Regular row %d leaves the frame; stopping", row)
                break
            slots.extend(candidates)
        return slots

    def _check_overlaps(self, slots: list[UpgradeSlot], side: float) -> None:
        limit = self.layout.overlap_margin * side
        for a, b in itertools.combinations(slots, 2):
            ox, oy = a.bounds.overlap(b.bounds)
            if ox > limit and oy > limit:
                raise LayoutError(
                    f"Slots {a.id} and {b.id} overlap by {ox:.1f}x{oy:.1f}px "
                    f"(margin {limit:.1f}px)"
                )
