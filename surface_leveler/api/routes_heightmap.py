"""Height map routes: grid preview, building, validation and file exchange."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from surface_leveler.core.state import AppState, app_state
from surface_leveler.heightmap.builder import (
    InvalidMapError,
    ShapeMismatchError,
    build_from_probe_results,
    map_status,
    normalize,
    require_valid,
    validate,
)
from surface_leveler.heightmap.model import Bounds, HeightMap, LevelerConfig, ProbeGridPoint
from surface_leveler.heightmap.storage import (
    MalformedFileError,
    default_map_filename,
    dumps_height_map,
    loads_height_map,
    suggest_grid_spacing,
)
from surface_leveler.probe.planner import GridSpec, generate_grid


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


router = APIRouter(prefix="/heightmap", tags=["heightmap"])


class GridRequest(BaseModel):
    """Probe area plus optional grid settings overriding the stored config."""

    bounds: Bounds
    config: Optional[LevelerConfig] = None


class BuildRequest(BaseModel):
    """Probe targets with the Z value measured at each of them."""

    points: List[ProbeGridPoint]
    z_values: List[float] = Field(alias="zValues")
    normalize: bool = True

    model_config = ConfigDict(populate_by_name=True)


class LoadRequest(BaseModel):
    """Raw text of a saved height map document."""

    document: str


def _map_payload(height_map: Optional[HeightMap]) -> dict:
    return {
        "status": map_status(height_map),
        "map": height_map.model_dump(by_alias=True) if height_map is not None else None,
    }


@router.post("/grid")
async def preview_grid(payload: GridRequest) -> dict:
    """Return the probe targets for ``payload.bounds`` in probing order."""

    config = payload.config or app_state.read().config
    points = generate_grid(payload.bounds, GridSpec.from_config(config))
    return {
        "count": len(points),
        "points": [point.model_dump() for point in points],
    }


@router.post("/build")
async def build_map(payload: BuildRequest) -> dict:
    """Build a map from probe results and make it the active map."""

    state = app_state.read()
    try:
        height_map = build_from_probe_results(
            payload.points, payload.z_values, config=state.config, units=state.units
        )
        if payload.normalize:
            height_map = normalize(height_map)
        require_valid(height_map)
    except (ShapeMismatchError, InvalidMapError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    app_state.update(height_map=height_map)
    _LOGGER.info("Stored height map built from %d probe results", len(height_map.points))
    return _map_payload(height_map)


@router.get("")
async def current_map() -> dict:
    """Return the active map and its status line."""

    return _map_payload(app_state.read().height_map)


@router.delete("")
async def clear_map() -> dict:
    """Forget the active map."""

    app_state.update(height_map=None)
    return _map_payload(None)


@router.post("/validate")
async def validate_map(height_map: Optional[HeightMap] = None) -> dict:
    """Validate ``height_map`` or, when omitted, the active map."""

    target = height_map if height_map is not None else app_state.read().height_map
    return validate(target).model_dump(exclude_none=True)


@router.put("/config")
async def update_config(config: LevelerConfig) -> dict:
    """Replace the probing and transform settings."""

    state = app_state.update(config=config)
    return state.config.model_dump(by_alias=True)


@router.post("/load")
async def load_map(payload: LoadRequest) -> dict:
    """Parse a saved document and make it the active map.

    A document that fails to parse or validate leaves the active map untouched.
    """

    try:
        height_map = await asyncio.to_thread(loads_height_map, payload.document)
    except MalformedFileError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except InvalidMapError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid map file: {exc}"
        ) from exc

    def _point_count(declared: int, distinct: int) -> int:
        return declared if declared >= 2 else distinct

    def _apply(state: AppState) -> AppState:
        config = height_map.config or state.config
        state.height_map = height_map
        state.config = LevelerConfig.model_validate(
            {
                **config.model_dump(),
                "grid_spacing": suggest_grid_spacing(height_map),
                "point_count_x": _point_count(
                    height_map.resolution.x, len(height_map.distinct_x())
                ),
                "point_count_y": _point_count(
                    height_map.resolution.y, len(height_map.distinct_y())
                ),
            }
        )
        return state

    app_state.mutate(_apply)
    _LOGGER.info("Loaded height map document with %d points", len(height_map.points))
    return _map_payload(height_map)


@router.get("/export")
async def export_map() -> dict:
    """Serialize the active map together with the current settings."""

    state = app_state.read()
    if state.height_map is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No height map available")
    return {
        "filename": default_map_filename(),
        "document": dumps_height_map(state.height_map, state.config),
    }


__all__ = ["router"]
