"""Bilinear interpolation and edge extrapolation over a probed height map."""

from __future__ import annotations

from typing import Dict, NamedTuple, Optional, Tuple

import numpy as np

from .model import HeightMap, Point3


class Cell(NamedTuple):
    """Four stored samples surrounding a query point."""

    p00: Point3
    p10: Point3
    p01: Point3
    p11: Point3


class HeightMapInterpolator:
    """Precomputed lookup structure for repeated queries against one map.

    The map is treated as an unordered point cloud keyed by ``(x, y)``. Queries
    outside the map bounds select the nearest edge cell, while the weights are
    computed from the original coordinates so the surface is linearly
    extrapolated along that cell's gradient instead of clamped to the edge.
    """

    def __init__(self, height_map: HeightMap) -> None:
        self._map = height_map
        self._xs = np.unique(np.asarray([p.x for p in height_map.points], dtype=float))
        self._ys = np.unique(np.asarray([p.y for p in height_map.points], dtype=float))
        self._lookup: Dict[Tuple[float, float], Point3] = {}
        for point in height_map.points:
            # First sample wins on duplicate coordinates.
            self._lookup.setdefault((point.x, point.y), point)

    @staticmethod
    def _interval(value: float, axis: np.ndarray) -> int:
        """Index ``i`` of the first interval ``[axis[i], axis[i + 1]]`` holding ``value``."""

        idx = int(np.searchsorted(axis, value, side="left")) - 1
        return max(0, min(idx, len(axis) - 2))

    def find_cell(self, x: float, y: float) -> Optional[Cell]:
        """Return the grid cell used to evaluate ``(x, y)`` or ``None``."""

        if len(self._xs) < 2 or len(self._ys) < 2:
            return None

        bounds = self._map.bounds
        lookup_x = max(bounds.min_x, min(bounds.max_x, x))
        lookup_y = max(bounds.min_y, min(bounds.max_y, y))

        i = self._interval(lookup_x, self._xs)
        j = self._interval(lookup_y, self._ys)
        x0, x1 = float(self._xs[i]), float(self._xs[i + 1])
        y0, y1 = float(self._ys[j]), float(self._ys[j + 1])

        p00 = self._lookup.get((x0, y0))
        p10 = self._lookup.get((x1, y0))
        p01 = self._lookup.get((x0, y1))
        p11 = self._lookup.get((x1, y1))
        if p00 is None or p10 is None or p01 is None or p11 is None:
            return None
        return Cell(p00, p10, p01, p11)

    def interpolate(self, x: float, y: float) -> Optional[float]:
        """Bilinear estimate at ``(x, y)``; extrapolates outside the bounds."""

        cell = self.find_cell(x, y)
        if cell is None:
            return None

        p00, p10, p01, p11 = cell
        if p00.x == p10.x and p00.y == p01.y:
            return p00.z

        x_range = p10.x - p00.x
        y_range = p01.y - p00.y
        # Unclamped coordinates: weights outside [0, 1] extrapolate.
        x_weight = (x - p00.x) / x_range if x_range > 0 else 0.0
        y_weight = (y - p00.y) / y_range if y_range > 0 else 0.0

        return (
            p00.z * (1 - x_weight) * (1 - y_weight)
            + p10.z * x_weight * (1 - y_weight)
            + p01.z * (1 - x_weight) * y_weight
            + p11.z * x_weight * y_weight
        )

    def z_offset(self, x: float, y: float) -> float:
        """Interpolated offset, or ``0.0`` when the map cannot answer."""

        if not self._map.points:
            return 0.0
        z = self.interpolate(x, y)
        return 0.0 if z is None else float(z)


def find_cell(x: float, y: float, height_map: HeightMap) -> Optional[Cell]:
    """Locate the four samples surrounding ``(x, y)``."""

    return HeightMapInterpolator(height_map).find_cell(x, y)


def bilinear_interpolate(x: float, y: float, height_map: HeightMap) -> Optional[float]:
    """Interpolated Z at ``(x, y)`` or ``None`` if no cell can be resolved."""

    return HeightMapInterpolator(height_map).interpolate(x, y)


def get_z_offset(x: float, y: float, height_map: Optional[HeightMap]) -> float:
    """Z correction for ``(x, y)``; degrades to ``0.0`` instead of failing."""

    if height_map is None or not height_map.points:
        return 0.0
    return HeightMapInterpolator(height_map).z_offset(x, y)


def is_within_bounds(x: float, y: float, height_map: HeightMap) -> bool:
    """Whether ``(x, y)`` lies inside the map bounds, edges included."""

    return height_map.bounds.contains(x, y)


__all__ = [
    "Cell",
    "HeightMapInterpolator",
    "find_cell",
    "bilinear_interpolate",
    "get_z_offset",
    "is_within_bounds",
]
