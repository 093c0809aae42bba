"""Structured records describing a probed work surface."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Point3(BaseModel):
    """Single measured or interpolated surface sample."""

    x: float
    y: float
    z: float

    model_config = ConfigDict(frozen=True)


class ProbeGridPoint(BaseModel):
    """Target for a single probe, no Z measured yet."""

    x: float
    y: float

    model_config = ConfigDict(frozen=True)


class Bounds(BaseModel):
    """Axis-aligned rectangle in machine coordinates.

    Inverted ranges are accepted here; :func:`surface_leveler.heightmap.builder.validate`
    is where a map with inverted bounds gets rejected.
    """

    min_x: float = Field(alias="minX")
    max_x: float = Field(alias="maxX")
    min_y: float = Field(alias="minY")
    max_y: float = Field(alias="maxY")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def contains(self, x: float, y: float) -> bool:
        """Inclusive containment test."""

        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def is_inverted(self) -> bool:
        return self.min_x > self.max_x or self.min_y > self.max_y


class Resolution(BaseModel):
    """Number of distinct sample columns (``x``) and rows (``y``)."""

    x: int
    y: int

    model_config = ConfigDict(frozen=True)


class LevelerConfig(BaseModel):
    """Probing and transformation parameters.

    A plain value object: it is stored alongside a :class:`HeightMap` so that a
    saved map can replay the transform it was probed for.
    """

    grid_spacing: float = Field(10.0, alias="gridSpacing")
    use_point_count: bool = Field(False, alias="usePointCount")
    point_count_x: int = Field(5, alias="pointCountX")
    point_count_y: int = Field(5, alias="pointCountY")
    z_clearance: float = Field(5.0, alias="zClearance")
    probe_feed_rate: float = Field(100.0, alias="probeFeedRate")
    max_probe_depth: float = Field(10.0, alias="maxProbeDepth")
    segment_length: float = Field(1.0, alias="segmentLength")

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    @field_validator("grid_spacing", "probe_feed_rate", "max_probe_depth", "segment_length")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        """Reject zero or negative distances and feeds."""

        number = float(value)
        if number <= 0:
            raise ValueError("value must be positive")
        return number

    @field_validator("point_count_x", "point_count_y")
    @classmethod
    def _validate_counts(cls, value: int) -> int:
        """A grid axis needs at least two samples."""

        count = int(value)
        if count < 2:
            raise ValueError("point count must be at least 2")
        return count


class HeightMap(BaseModel):
    """Probed surface: bounds, resolution and the samples in probing order."""

    bounds: Bounds
    resolution: Resolution
    points: List[Point3] = Field(default_factory=list)
    created_at: Optional[str] = Field(None, alias="createdAt")
    units: Optional[str] = None
    config: Optional[LevelerConfig] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def distinct_x(self) -> List[float]:
        return sorted({point.x for point in self.points})

    def distinct_y(self) -> List[float]:
        return sorted({point.y for point in self.points})


class ValidationResult(BaseModel):
    """Outcome of :func:`surface_leveler.heightmap.builder.validate`."""

    valid: bool
    error: Optional[str] = None


__all__ = [
    "Point3",
    "ProbeGridPoint",
    "Bounds",
    "Resolution",
    "LevelerConfig",
    "HeightMap",
    "ValidationResult",
]
