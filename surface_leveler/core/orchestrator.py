"""High-level leveling workflows built on top of a probing collaborator."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Protocol

from surface_leveler.core.state import AppState, app_state
from surface_leveler.gcode.transformer import (
    TransformOptions,
    TransformResult,
    has_height_map_applied,
    transform_gcode,
)
from surface_leveler.heightmap.builder import (
    MIN_POINTS,
    build_from_probe_results,
    map_status,
    normalize,
    require_valid,
)
from surface_leveler.heightmap.model import Bounds, HeightMap, ProbeGridPoint
from surface_leveler.probe.planner import (
    GridSpec,
    ProbeResult,
    collect_probe_results,
    generate_grid,
    probe_commands,
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


class OrchestratorError(RuntimeError):
    """Raised when orchestrated workflows cannot be executed."""


class ProbingError(OrchestratorError):
    """Raised when a probe run ends without a usable height map."""


class Prober(Protocol):
    """Collaborator that moves the machine and reports a single probe result."""

    def probe_point(self, point: ProbeGridPoint, commands: List[str]) -> ProbeResult:
        ...


class Orchestrator:
    """Coordinate probing, map storage and program rewriting."""

    def __init__(self, prober: Prober) -> None:
        self._prober = prober

    async def run_probing(self, bounds: Bounds) -> dict:
        """Probe ``bounds`` with the configured grid and store the resulting map.

        Probing stops at the first failed probe; in that case nothing is stored
        and :class:`ProbingError` is raised.
        """

        state = app_state.read()
        config = state.config
        points = generate_grid(bounds, GridSpec.from_config(config))
        if len(points) < MIN_POINTS:
            raise ProbingError("Need at least 4 probe points (2x2 grid minimum)")
        if len({p.x for p in points}) < 2 or len({p.y for p in points}) < 2:
            raise ProbingError("Probe grid needs at least 2 distinct X and 2 distinct Y positions")

        def _probe(point: ProbeGridPoint) -> ProbeResult:
            return self._prober.probe_point(point, probe_commands(point, config))

        _LOGGER.info("Starting probe run over %d points", len(points))
        run = await asyncio.to_thread(collect_probe_results, points, _probe)
        if run.error is not None:
            raise ProbingError(run.error)

        height_map = normalize(
            build_from_probe_results(run.points, run.z_values, config=config, units=state.units)
        )
        require_valid(height_map)
        app_state.update(height_map=height_map)
        _LOGGER.info("Probe run complete: %s", map_status(height_map))

        return {
            "status": map_status(height_map),
            "points": len(height_map.points),
            "bounds": height_map.bounds.model_dump(by_alias=True),
        }

    async def apply_height_map(self, program: str, allow_reapply: bool = False) -> TransformResult:
        """Rewrite ``program`` with the stored map.

        Programs that already carry the provenance header are refused unless
        ``allow_reapply`` is set, since a second pass compounds the offsets.
        """

        state = self._require_map()
        if has_height_map_applied(program) and not allow_reapply:
            raise OrchestratorError(
                "Program already has a height map applied; "
                "applying again would compound the adjustments"
            )
        options = TransformOptions.from_config(state.config)
        result = await asyncio.to_thread(transform_gcode, program, state.height_map, options)
        return result

    def clear_map(self) -> AppState:
        """Forget the stored map."""

        _LOGGER.info("Clearing stored height map")
        return app_state.update(height_map=None)

    def _require_map(self) -> AppState:
        """Ensure a valid height map is stored before transforming."""

        state = app_state.read()
        if state.height_map is None:
            raise OrchestratorError("No height map available")
        require_valid(state.height_map)
        return state

    @staticmethod
    def stored_map() -> HeightMap | None:
        return app_state.read().height_map


__all__ = ["Orchestrator", "OrchestratorError", "ProbingError", "Prober"]
