"""Tests for hex lattice geometry."""

import math

import numpy as np
import pytest

from hexgrid_scanner.hexmath import (
    AxialCoordinate,
    PixelPoint,
    axial_to_pixel,
    hex_distance,
    hex_mask,
    hex_ring,
    hex_round,
    hex_spiral,
    is_in_hex_shape,
    pixel_to_axial,
)

ORIGIN = PixelPoint(960.0, 540.0)

# ---------------------------------------------------------------------------
# axial_to_pixel / pixel_to_axial
# ---------------------------------------------------------------------------


class TestAxialPixelConversion:
    def test_origin_maps_to_origin(self):
        assert axial_to_pixel(0, 0, 24, ORIGIN) == ORIGIN

    def test_known_offsets(self):
        p = axial_to_pixel(1, 0, 24, PixelPoint(0, 0))
        assert p.x == pytest.approx(36.0)
        assert p.y == pytest.approx(24 * math.sqrt(3) / 2)

        p = axial_to_pixel(0, 1, 24, PixelPoint(0, 0))
        assert p.x == pytest.approx(0.0)
        assert p.y == pytest.approx(24 * math.sqrt(3))

    @pytest.mark.parametrize("radius", [10.0, 24.0, 37.5])
    @pytest.mark.parametrize(
        "origin", [PixelPoint(0, 0), PixelPoint(960, 540), PixelPoint(-13.25, 7.5)]
    )
    def test_round_trip_integer_coordinates(self, radius, origin):
        for q in range(-6, 7):
            for r in range(-6, 7):
                p = axial_to_pixel(q, r, radius, origin)
                assert pixel_to_axial(p, radius, origin) == AxialCoordinate(q, r)

    def test_nearby_pixel_snaps_to_hex(self):
        center = axial_to_pixel(2, -1, 24, ORIGIN)
        assert pixel_to_axial(center.offset(5, -4), 24, ORIGIN) == AxialCoordinate(2, -1)


class TestHexRound:
    def test_keeps_cube_invariant(self):
        for q, r in [(0.4, 0.4), (1.6, -0.7), (-2.45, 1.2), (0.49, -0.51)]:
            h = hex_round(q, r)
            assert h.q + h.r + h.s == 0

    def test_exact_integers_unchanged(self):
        assert hex_round(3.0, -2.0) == AxialCoordinate(3, -2)


# ---------------------------------------------------------------------------
# Distances and rings
# ---------------------------------------------------------------------------


class TestRings:
    def test_distance(self):
        a = AxialCoordinate(0, 0)
        assert hex_distance(a, AxialCoordinate(0, 0)) == 0
        assert hex_distance(a, AxialCoordinate(2, -1)) == 2
        assert hex_distance(a, AxialCoordinate(-3, 3)) == 3

    @pytest.mark.parametrize("radius", [1, 2, 3])
    def test_ring_size_and_distance(self, radius):
        center = AxialCoordinate(1, -2)
        ring = hex_ring(center, radius)
        assert len(ring) == 6 * radius
        assert len(set(ring)) == len(ring)
        assert all(hex_distance(center, h) == radius for h in ring)

    def test_spiral_counts(self):
        assert len(hex_spiral(AxialCoordinate(0, 0), 2)) == 1 + 6 + 12

    def test_negative_radius_rejected(self):
        with pytest.raises(ValueError):
            hex_ring(AxialCoordinate(0, 0), -1)


# ---------------------------------------------------------------------------
# Hex membership and mask
# ---------------------------------------------------------------------------


class TestHexShape:
    def test_center_inside_far_point_outside(self):
        assert is_in_hex_shape(0, 0, 10)
        assert not is_in_hex_shape(20, 0, 10)
        assert not is_in_hex_shape(0, 10.5, 10)

    def test_corner_cut(self):
        # inside both axis bounds but beyond the slanted edge
        assert not is_in_hex_shape(8.5, 6.0, 10)

    def test_symmetric_under_half_turn(self):
        rng = np.random.default_rng(3)
        for x, y in rng.uniform(-15, 15, size=(500, 2)):
            assert is_in_hex_shape(x, y, 10) == is_in_hex_shape(-x, -y, 10)

    @pytest.mark.parametrize("shape", [(48, 48), (47, 47), (40, 56)])
    def test_mask_symmetric_under_half_turn(self, shape):
        mask = hex_mask(*shape)
        np.testing.assert_array_equal(mask, mask[::-1, ::-1])

    def test_mask_is_read_only_and_sized(self):
        mask = hex_mask(48, 48)
        assert mask.shape == (48, 48)
        assert mask.dtype == bool
        assert not mask.flags.writeable
        assert mask[24, 24]
        assert not mask[0, 0]
