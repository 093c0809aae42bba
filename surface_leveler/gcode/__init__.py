"""G-code rewriting against a probed height map."""

from .transformer import (
    OUTSIDE_BOUNDS_WARNING,
    PROVENANCE_MARKER,
    BoundsReport,
    TransformOptions,
    TransformResult,
    TransformState,
    has_height_map_applied,
    iter_transform_gcode,
    process_line,
    transform_gcode,
    validate_gcode_bounds,
)

__all__ = [
    "OUTSIDE_BOUNDS_WARNING",
    "PROVENANCE_MARKER",
    "BoundsReport",
    "TransformOptions",
    "TransformResult",
    "TransformState",
    "has_height_map_applied",
    "iter_transform_gcode",
    "process_line",
    "transform_gcode",
    "validate_gcode_bounds",
]
