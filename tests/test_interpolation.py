"""Tests for bilinear interpolation and edge extrapolation."""

from __future__ import annotations

import math
import unittest

from surface_leveler.heightmap.builder import build_from_probe_results
from surface_leveler.heightmap.interpolation import (
    HeightMapInterpolator,
    bilinear_interpolate,
    find_cell,
    get_z_offset,
    is_within_bounds,
)
from surface_leveler.heightmap.model import (
    Bounds,
    HeightMap,
    Point3,
    ProbeGridPoint,
    Resolution,
)
from surface_leveler.probe.planner import GridSpec, generate_grid


def _unit_square() -> HeightMap:
    points = [
        ProbeGridPoint(x=0.0, y=0.0),
        ProbeGridPoint(x=1.0, y=0.0),
        ProbeGridPoint(x=1.0, y=1.0),
        ProbeGridPoint(x=0.0, y=1.0),
    ]
    return build_from_probe_results(points, [0.0, 1.0, 2.0, 1.0])


def _surface_map(surface, bounds: Bounds, spacing: float) -> HeightMap:
    points = generate_grid(bounds, GridSpec(grid_spacing=spacing))
    return build_from_probe_results(points, [surface(p.x, p.y) for p in points])


class InterpolationTests(unittest.TestCase):
    """Verify interpolation, extrapolation and degraded lookups."""

    def test_center_of_unit_square(self) -> None:
        self.assertTrue(math.isclose(bilinear_interpolate(0.5, 0.5, _unit_square()), 1.0))

    def test_exact_at_samples(self) -> None:
        height_map = _surface_map(
            lambda x, y: 0.01 * x * y - 0.2 * x + 0.3,
            Bounds(min_x=0.0, max_x=30.0, min_y=0.0, max_y=20.0),
            7.0,
        )
        for point in height_map.points:
            with self.subTest(x=point.x, y=point.y):
                value = bilinear_interpolate(point.x, point.y, height_map)
                self.assertTrue(math.isclose(value, point.z, abs_tol=1e-9))

    def test_reproduces_bilinear_surface_inside_cells(self) -> None:
        surface = lambda x, y: 0.4 * x - 0.2 * y + 1.5  # noqa: E731
        height_map = _surface_map(surface, Bounds(min_x=0.0, max_x=20.0, min_y=0.0, max_y=20.0), 10.0)

        for x, y in [(2.0, 3.0), (12.5, 7.5), (19.0, 19.0), (10.0, 15.0)]:
            with self.subTest(x=x, y=y):
                self.assertTrue(math.isclose(bilinear_interpolate(x, y, height_map), surface(x, y)))

    def test_extrapolates_outside_bounds(self) -> None:
        """Outside the bounds the nearest edge cell's gradient is extended."""

        height_map = _unit_square()
        # Along y=0 the edge rises from 0 to 1 per unit of x.
        self.assertTrue(math.isclose(bilinear_interpolate(2.0, 0.0, height_map), 2.0))
        self.assertTrue(math.isclose(bilinear_interpolate(-1.0, 0.0, height_map), -1.0))
        self.assertTrue(math.isclose(bilinear_interpolate(0.0, -1.0, height_map), -1.0))
        self.assertNotEqual(bilinear_interpolate(2.0, 0.0, height_map), 1.0)

    def test_extrapolation_uses_nearest_edge_cell(self) -> None:
        surface = lambda x, y: 0.5 * x + 0.1 * y  # noqa: E731
        height_map = _surface_map(surface, Bounds(min_x=0.0, max_x=30.0, min_y=0.0, max_y=10.0), 10.0)

        self.assertTrue(math.isclose(bilinear_interpolate(35.0, 5.0, height_map), surface(35.0, 5.0)))
        self.assertTrue(math.isclose(bilinear_interpolate(-4.0, 12.0, height_map), surface(-4.0, 12.0)))

    def test_find_cell_selects_surrounding_samples(self) -> None:
        height_map = _surface_map(
            lambda x, y: x + y, Bounds(min_x=0.0, max_x=20.0, min_y=0.0, max_y=20.0), 10.0
        )
        cell = find_cell(12.0, 3.0, height_map)

        self.assertIsNotNone(cell)
        self.assertEqual((cell.p00.x, cell.p00.y), (10.0, 0.0))
        self.assertEqual((cell.p11.x, cell.p11.y), (20.0, 10.0))

        edge = find_cell(50.0, 50.0, height_map)
        self.assertEqual((edge.p00.x, edge.p00.y), (10.0, 10.0))

    def test_find_cell_none_for_sparse_map(self) -> None:
        points = [
            Point3(x=0.0, y=0.0, z=0.0),
            Point3(x=10.0, y=0.0, z=0.0),
            Point3(x=0.0, y=10.0, z=0.0),
            Point3(x=20.0, y=20.0, z=0.0),
        ]
        height_map = HeightMap(
            bounds=Bounds(min_x=0.0, max_x=20.0, min_y=0.0, max_y=20.0),
            resolution=Resolution(x=3, y=3),
            points=points,
        )

        self.assertIsNone(find_cell(5.0, 5.0, height_map))
        self.assertIsNone(bilinear_interpolate(5.0, 5.0, height_map))
        self.assertEqual(get_z_offset(5.0, 5.0, height_map), 0.0)

    def test_find_cell_none_for_single_row(self) -> None:
        points = [Point3(x=float(i), y=0.0, z=1.0) for i in range(4)]
        height_map = HeightMap(
            bounds=Bounds(min_x=0.0, max_x=3.0, min_y=0.0, max_y=0.0),
            resolution=Resolution(x=4, y=1),
            points=points,
        )

        self.assertIsNone(find_cell(1.0, 0.0, height_map))

    def test_z_offset_degrades_to_zero(self) -> None:
        empty = HeightMap(
            bounds=Bounds(min_x=0.0, max_x=0.0, min_y=0.0, max_y=0.0),
            resolution=Resolution(x=0, y=0),
        )

        self.assertEqual(get_z_offset(1.0, 1.0, None), 0.0)
        self.assertEqual(get_z_offset(1.0, 1.0, empty), 0.0)
        self.assertTrue(math.isclose(get_z_offset(0.5, 0.5, _unit_square()), 1.0))

    def test_interpolator_matches_functions(self) -> None:
        height_map = _unit_square()
        interpolator = HeightMapInterpolator(height_map)

        for x, y in [(0.25, 0.75), (1.5, -0.5), (0.0, 1.0)]:
            with self.subTest(x=x, y=y):
                self.assertEqual(interpolator.z_offset(x, y), get_z_offset(x, y, height_map))

    def test_is_within_bounds_is_inclusive(self) -> None:
        height_map = _unit_square()

        self.assertTrue(is_within_bounds(0.0, 0.0, height_map))
        self.assertTrue(is_within_bounds(1.0, 1.0, height_map))
        self.assertFalse(is_within_bounds(1.0001, 0.5, height_map))
        self.assertFalse(is_within_bounds(0.5, -0.1, height_map))


if __name__ == "__main__":
    unittest.main()
