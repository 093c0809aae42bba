"""Assemble probe results into validated, normalized height maps."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .model import (
    Bounds,
    HeightMap,
    LevelerConfig,
    Point3,
    ProbeGridPoint,
    Resolution,
    ValidationResult,
)


_LOGGER = logging.getLogger(__name__)
if not _LOGGER.handlers:
    _LOGGER.setLevel(logging.INFO)
    _LOG_PATH = Path(__file__).resolve().parents[2] / "log.txt"
    try:
        _LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        _FILE_HANDLER = logging.FileHandler(_LOG_PATH, encoding="utf-8")
        _FILE_HANDLER.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        _LOGGER.addHandler(_FILE_HANDLER)
    except OSError:
        _LOGGER.addHandler(logging.NullHandler())
else:
    _LOGGER.addHandler(logging.NullHandler())


MIN_POINTS = 4


class HeightMapError(Exception):
    """Base exception for height map construction and loading errors."""


class ShapeMismatchError(HeightMapError):
    """Raised when probe points and measured Z values disagree in count."""


class InvalidMapError(HeightMapError):
    """Raised when a height map cannot support bilinear interpolation."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def build_from_probe_results(
    points: Sequence[ProbeGridPoint],
    z_values: Sequence[float],
    config: Optional[LevelerConfig] = None,
    units: Optional[str] = None,
) -> HeightMap:
    """Pair each probe target with its measured Z and wrap the result.

    Bounds come from the probed coordinates themselves rather than from
    ``config`` so that a partially completed probe run still yields a usable
    map.
    """

    if len(points) != len(z_values):
        raise ShapeMismatchError(
            f"Got {len(points)} probe points but {len(z_values)} Z values"
        )

    samples = [
        Point3(x=float(point.x), y=float(point.y), z=float(z))
        for point, z in zip(points, z_values)
    ]
    xs = [sample.x for sample in samples]
    ys = [sample.y for sample in samples]

    if samples:
        bounds = Bounds(min_x=min(xs), max_x=max(xs), min_y=min(ys), max_y=max(ys))
    else:
        bounds = Bounds(min_x=0.0, max_x=0.0, min_y=0.0, max_y=0.0)

    height_map = HeightMap(
        bounds=bounds,
        resolution=Resolution(x=len(set(xs)), y=len(set(ys))),
        points=samples,
        created_at=datetime.now(timezone.utc).isoformat(),
        units=units,
        config=config,
    )
    _LOGGER.info(
        "Built height map from %d samples (%dx%d)",
        len(samples),
        height_map.resolution.x,
        height_map.resolution.y,
    )
    return height_map


def normalize(height_map: HeightMap) -> HeightMap:
    """Shift every Z so that the lowest sample becomes the Z=0 reference."""

    if not height_map.points:
        return height_map

    lowest = min(point.z for point in height_map.points)
    shifted = [Point3(x=p.x, y=p.y, z=p.z - lowest) for p in height_map.points]
    _LOGGER.info("Normalized height map by %.4f", -lowest)
    return height_map.model_copy(update={"points": shifted})


def validate(height_map: Optional[HeightMap]) -> ValidationResult:
    """Check that ``height_map`` can support bilinear interpolation."""

    if height_map is None:
        return ValidationResult(valid=False, error="No height map data")
    if not height_map.points:
        return ValidationResult(valid=False, error="Height map has no points")
    if len(height_map.points) < MIN_POINTS:
        return ValidationResult(
            valid=False,
            error=f"Height map needs at least {MIN_POINTS} points (2x2 grid minimum)",
        )

    unique_x = {point.x for point in height_map.points}
    unique_y = {point.y for point in height_map.points}
    if len(unique_x) < 2 or len(unique_y) < 2:
        return ValidationResult(
            valid=False,
            error="Height map needs at least 2 distinct X and 2 distinct Y coordinates",
        )
    if height_map.bounds.is_inverted():
        return ValidationResult(valid=False, error="Height map bounds are inverted")
    return ValidationResult(valid=True)


def require_valid(height_map: Optional[HeightMap]) -> HeightMap:
    """Return ``height_map`` or raise :class:`InvalidMapError` with the reason."""

    result = validate(height_map)
    if height_map is None or not result.valid:
        _LOGGER.warning("Rejected height map: %s", result.error)
        raise InvalidMapError(result.error or "Invalid height map")
    return height_map


def map_status(height_map: Optional[HeightMap]) -> str:
    """Short human-readable summary of ``height_map``."""

    if height_map is None:
        return "Empty"
    columns = len({point.x for point in height_map.points})
    rows = len({point.y for point in height_map.points})
    return f"Valid ({columns}x{rows}, {len(height_map.points)} points)"


__all__ = [
    "MIN_POINTS",
    "HeightMapError",
    "ShapeMismatchError",
    "InvalidMapError",
    "build_from_probe_results",
    "normalize",
    "validate",
    "require_valid",
    "map_status",
]
