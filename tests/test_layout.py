"""Tests for the zone layout mapper."""

import pytest

from hexgrid_scanner.config import LayoutConfig
from hexgrid_scanner.constants import SQRT3, CoreUpgrade, Zone
from hexgrid_scanner.errors import LayoutError
from hexgrid_scanner.hexmath import AxialCoordinate, PixelPoint
from hexgrid_scanner.layout import Rect, ZoneLayoutMapper, core_slot_id, regular_slot_id
from hexgrid_scanner.scale import ScaleEstimate, ScaleEstimator


def _estimate(scale: float = 1.0, origin: PixelPoint = PixelPoint(960, 540)) -> ScaleEstimate:
    return ScaleEstimate(scale, origin, 0.8, "test")


# ---------------------------------------------------------------------------
# Core zone
# ---------------------------------------------------------------------------


class TestCoreZone:
    def test_three_fixed_upgrades(self, reference_map):
        core = reference_map.core_slots
        assert [s.identity for s in core] == [
            CoreUpgrade.WEAPON,
            CoreUpgrade.BODY,
            CoreUpgrade.SHIELD,
        ]
        assert all(s.zone is Zone.CORE for s in core)

    def test_weapon_center(self, reference_map):
        weapon = reference_map[core_slot_id(CoreUpgrade.WEAPON)]
        assert weapon.center == PixelPoint(960, 560)

    def test_offsets_scale(self):
        cmap = ZoneLayoutMapper().map(_estimate(2.0, PixelPoint(1920, 1080)), 3840, 2160)
        body = cmap[core_slot_id(CoreUpgrade.BODY)]
        assert body.center == PixelPoint(1920 - 120, 1080 - 80)
        assert body.bounds.width == pytest.approx(SQRT3 * 48)

    def test_core_outside_frame_raises(self):
        with pytest.raises(LayoutError, match="outside"):
            ZoneLayoutMapper().map(_estimate(origin=PixelPoint(50, 540)), 1920, 1080)


# ---------------------------------------------------------------------------
# Regular zone
# ---------------------------------------------------------------------------


class TestRegularZone:
    def test_reference_frame_fills_all_rows(self, reference_map):
        assert len(reference_map.regular_slots) == 4 * 10
        assert len(reference_map) == 43

    def test_short_frame_fits_fewer_rows(self):
        estimate = ScaleEstimator().estimate(1920, 800)
        cmap = ZoneLayoutMapper().map(estimate, 1920, 800)
        assert len(cmap.regular_slots) == 4 * 7

    def test_count_is_multiple_of_grid_width(self):
        layout = LayoutConfig(grid_width=3)
        cmap = ZoneLayoutMapper(layout).map(_estimate(), 1920, 1080)
        assert len(cmap.regular_slots) % 3 == 0

    def test_first_row_coordinates(self, reference_map):
        first = [s.identity for s in reference_map.regular_slots[:4]]
        assert first == [
            AxialCoordinate(0, 0),
            AxialCoordinate(1, 0),
            AxialCoordinate(2, -1),
            AxialCoordinate(3, -1),
        ]

    def test_slots_inside_frame(self, reference_map):
        assert all(s.bounds.within(1920, 1080) for s in reference_map)

    def test_ids_unique_and_prefixed(self, reference_map):
        ids = reference_map.ids
        assert len(ids) == len(set(ids))
        assert regular_slot_id(AxialCoordinate(2, -1)) == "regular:2,-1"
        assert regular_slot_id(AxialCoordinate(2, -1)) in reference_map

    def test_no_row_fits(self):
        with pytest.raises(LayoutError, match="No regular-zone row"):
            ZoneLayoutMapper().map(_estimate(origin=PixelPoint(100, 100)), 200, 200)


# ---------------------------------------------------------------------------
# Validation and lookup
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize("width,height", [(0, 1080), (1920, 0), (-5, 10)])
    def test_degenerate_dimensions(self, width, height):
        with pytest.raises(LayoutError):
            ZoneLayoutMapper().map(_estimate(), width, height)

    def test_non_positive_scale(self):
        with pytest.raises(LayoutError):
            ZoneLayoutMapper().map(_estimate(0.0), 1920, 1080)

    def test_overlapping_core_slots(self):
        layout = LayoutConfig(body_offset=(0.0, 20.0))
        with pytest.raises(LayoutError, match="overlap"):
            ZoneLayoutMapper(layout).map(_estimate(), 1920, 1080)

    def test_layout_error_is_value_error(self):
        with pytest.raises(ValueError):
            ZoneLayoutMapper().map(_estimate(), 0, 0)


class TestLookup:
    def test_slot_at_core(self, reference_map):
        slot = reference_map.slot_at(PixelPoint(962, 558))
        assert slot.id == "core:weapon"

    def test_slot_at_regular(self, reference_map):
        target = reference_map[regular_slot_id(AxialCoordinate(2, 3))]
        assert reference_map.slot_at(target.center.offset(3, -2)) is target

    def test_slot_at_empty_space(self, reference_map):
        assert reference_map.slot_at(PixelPoint(5, 5)) is None


class TestRect:
    def test_overlap_depth(self):
        a = Rect(0, 0, 10, 10)
        assert a.overlap(Rect(5, 8, 10, 10)) == (5, 2)
        assert a.overlap(Rect(20, 0, 10, 10))[0] < 0

    def test_centered(self):
        r = Rect.centered(PixelPoint(10, 10), 4)
        assert (r.left, r.top, r.right, r.bottom) == (8, 8, 12, 12)
