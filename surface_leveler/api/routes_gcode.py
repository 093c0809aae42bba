"""G-code routes applying the active height map."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from surface_leveler.core.state import AppState, app_state
from surface_leveler.gcode.transformer import (
    TransformOptions,
    has_height_map_applied,
    transform_gcode,
    validate_gcode_bounds,
)
from surface_leveler.heightmap.builder import InvalidMapError, require_valid


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


router = APIRouter(prefix="/gcode", tags=["gcode"])


class TransformRequest(BaseModel):
    """Program text to rewrite with the active map."""

    program: str
    segment_length: Optional[float] = Field(None, gt=0, alias="segmentLength")
    warn_outside_bounds: bool = Field(True, alias="warnOutsideBounds")
    allow_reapply: bool = Field(False, alias="allowReapply")

    model_config = ConfigDict(populate_by_name=True)


class BoundsRequest(BaseModel):
    """Program text whose envelope is compared to the active map."""

    program: str


def _require_map() -> AppState:
    state = app_state.read()
    if state.height_map is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No height map available")
    try:
        require_valid(state.height_map)
    except InvalidMapError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return state


@router.post("/transform")
async def transform(payload: TransformRequest) -> dict:
    """Rewrite ``payload.program`` so every linear move follows the surface."""

    state = _require_map()
    if has_height_map_applied(payload.program) and not payload.allow_reapply:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Program already has a height map applied",
        )

    options = TransformOptions(
        segment_length=payload.segment_length or state.config.segment_length,
        warn_outside_bounds=payload.warn_outside_bounds,
    )
    result = await asyncio.to_thread(transform_gcode, payload.program, state.height_map, options)
    _LOGGER.info("Transformed program with %d warnings", len(result.warnings))
    return result.model_dump()


@router.post("/bounds")
async def bounds(payload: BoundsRequest) -> dict:
    """Compare the program's X/Y envelope to the active map bounds."""

    state = _require_map()
    return validate_gcode_bounds(payload.program, state.height_map).model_dump()


__all__ = ["router"]
