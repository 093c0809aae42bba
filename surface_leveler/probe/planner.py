"""Probe planning helpers for building surface height maps."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, field_validator

from surface_leveler.heightmap.model import Bounds, LevelerConfig, Point3, ProbeGridPoint


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
    except OSError:  # pragma: no cover - best effort logging setup
        _LOGGER.addHandler(logging.NullHandler())
else:  # pragma: no cover - logger configured by application
    _LOGGER.addHandler(logging.NullHandler())


GRID_DECIMALS = 3


class GridSpec(BaseModel):
    """Grid discretisation parameters.

    Either a fixed ``grid_spacing`` or, when ``use_point_count`` is set, an
    exact number of samples per axis.
    """

    grid_spacing: float = 10.0
    use_point_count: bool = False
    point_count_x: int = 5
    point_count_y: int = 5

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("grid_spacing")
    @classmethod
    def _validate_spacing(cls, value: float) -> float:
        """Ensure that the grid step is positive."""

        step = float(value)
        if step <= 0:
            raise ValueError("grid_spacing must be positive")
        return step

    @classmethod
    def from_config(cls, config: LevelerConfig) -> "GridSpec":
        return cls(
            grid_spacing=config.grid_spacing,
            use_point_count=config.use_point_count,
            point_count_x=config.point_count_x,
            point_count_y=config.point_count_y,
        )


class ProbeResult(BaseModel):
    """Outcome of a single probe reported by the probing collaborator."""

    success: bool
    point: Optional[Point3] = None
    error: Optional[str] = None


class ProbeRun(BaseModel):
    """Samples gathered by :func:`collect_probe_results`."""

    points: List[ProbeGridPoint]
    z_values: List[float]
    requested: int
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.error is None and len(self.points) == self.requested


def _count_axis(start: float, end: float, count: int) -> List[float]:
    step = (end - start) / (count - 1) if count > 1 else 0.0
    return [round(start + i * step, GRID_DECIMALS) for i in range(count)]


def _spacing_axis(start: float, end: float, spacing: float) -> List[float]:
    count = math.ceil((end - start) / spacing) + 1
    coords = [round(min(start + i * spacing, end), GRID_DECIMALS) for i in range(count)]
    # The far edge must always be sampled even when the span is not a multiple
    # of the spacing.
    if not coords or coords[-1] != end:
        coords.append(end)
    return coords


def generate_grid(bounds: Bounds, spec: GridSpec) -> List[ProbeGridPoint]:
    """Generate a boustrophedon raster of probe targets covering ``bounds``.

    Rows advance along increasing Y; X runs forward on even rows and backward
    on odd rows so consecutive probes stay close together.
    """

    if spec.use_point_count:
        x_coords = _count_axis(bounds.min_x, bounds.max_x, spec.point_count_x)
        y_coords = _count_axis(bounds.min_y, bounds.max_y, spec.point_count_y)
    else:
        x_coords = _spacing_axis(bounds.min_x, bounds.max_x, spec.grid_spacing)
        y_coords = _spacing_axis(bounds.min_y, bounds.max_y, spec.grid_spacing)

    points: List[ProbeGridPoint] = []
    for row, y in enumerate(y_coords):
        ordered = x_coords if row % 2 == 0 else list(reversed(x_coords))
        points.extend(ProbeGridPoint(x=x, y=y) for x in ordered)
    return points


def parse_prb(line: str) -> Optional[ProbeResult]:
    """Parse a GRBL ``[PRB:x,y,z:flag]`` report.

    Returns ``None`` for lines that are not probe reports. A flag other than
    ``1`` means the probe never made contact.
    """

    if "PRB:" not in line:
        return None
    start = line.find("PRB:") + 4
    end = line.find("]", start)
    if end == -1:
        end = len(line)
    payload = line[start:end]
    coords, _, flag = payload.partition(":")
    parts = [segment for segment in coords.split(",") if segment]
    if len(parts) < 3:
        return None
    try:
        x, y, z = (float(value) for value in parts[:3])
    except ValueError:
        return None

    point = Point3(x=x, y=y, z=z)
    if flag.strip() and flag.strip() != "1":
        return ProbeResult(success=False, point=point, error="Probe did not make contact")
    return ProbeResult(success=True, point=point)


def _format_float(value: float) -> str:
    return f"{value:.3f}"


def probe_commands(point: ProbeGridPoint, config: LevelerConfig) -> List[str]:
    """G-code probing one grid point: retract, travel, probe down, retract."""

    clearance = _format_float(config.z_clearance)
    return [
        f"G90 G0 Z{clearance}",
        f"G0 X{_format_float(point.x)} Y{_format_float(point.y)}",
        f"G38.2 Z-{_format_float(config.max_probe_depth)} F{_format_float(config.probe_feed_rate)}",
        f"G0 Z{clearance}",
    ]


def collect_probe_results(
    points: Sequence[ProbeGridPoint],
    probe: Callable[[ProbeGridPoint], ProbeResult],
) -> ProbeRun:
    """Probe ``points`` in order, stopping at the first failed probe.

    A failed probe never contributes a Z value; the returned run holds only the
    samples gathered up to that point.
    """

    probed: List[ProbeGridPoint] = []
    z_values: List[float] = []
    for index, target in enumerate(points):
        result = probe(target)
        if not result.success or result.point is None:
            message = result.error or "Probe failed - probe did not make contact"
            _LOGGER.warning(
                "Probe failed at point #%d (%.3f, %.3f): %s",
                index,
                target.x,
                target.y,
                message,
            )
            return ProbeRun(points=probed, z_values=z_values, requested=len(points), error=message)
        probed.append(target)
        z_values.append(result.point.z)
        _LOGGER.debug("Probe #%d at (%.3f, %.3f) -> %.4f", index, target.x, target.y, result.point.z)

    _LOGGER.info("Collected %d probe samples", len(probed))
    return ProbeRun(points=probed, z_values=z_values, requested=len(points))


__all__ = [
    "GRID_DECIMALS",
    "GridSpec",
    "ProbeResult",
    "ProbeRun",
    "generate_grid",
    "parse_prb",
    "probe_commands",
    "collect_probe_results",
]
