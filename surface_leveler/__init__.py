"""Surface leveling: probe grids, height maps and G-code compensation."""

from .core.orchestrator import Orchestrator
from .core.state import AppState, app_state
from .gcode.transformer import transform_gcode, validate_gcode_bounds
from .heightmap.model import HeightMap

__all__ = [
    "Orchestrator",
    "AppState",
    "app_state",
    "HeightMap",
    "transform_gcode",
    "validate_gcode_bounds",
]
