"""Height map records, construction, interpolation and persistence."""

from .builder import (
    HeightMapError,
    InvalidMapError,
    ShapeMismatchError,
    build_from_probe_results,
    map_status,
    normalize,
    require_valid,
    validate,
)
from .interpolation import (
    Cell,
    HeightMapInterpolator,
    bilinear_interpolate,
    find_cell,
    get_z_offset,
    is_within_bounds,
)
from .model import (
    Bounds,
    HeightMap,
    LevelerConfig,
    Point3,
    ProbeGridPoint,
    Resolution,
    ValidationResult,
)
from .storage import (
    MalformedFileError,
    default_map_filename,
    dumps_height_map,
    load_height_map,
    loads_height_map,
    save_height_map,
    suggest_grid_spacing,
)

__all__ = [
    "Bounds",
    "HeightMap",
    "LevelerConfig",
    "Point3",
    "ProbeGridPoint",
    "Resolution",
    "ValidationResult",
    "HeightMapError",
    "InvalidMapError",
    "ShapeMismatchError",
    "MalformedFileError",
    "build_from_probe_results",
    "normalize",
    "validate",
    "require_valid",
    "map_status",
    "Cell",
    "HeightMapInterpolator",
    "find_cell",
    "bilinear_interpolate",
    "get_z_offset",
    "is_within_bounds",
    "dumps_height_map",
    "loads_height_map",
    "save_height_map",
    "load_height_map",
    "default_map_filename",
    "suggest_grid_spacing",
]
