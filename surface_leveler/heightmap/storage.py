"""Reading and writing self-describing height map documents."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .builder import HeightMapError, require_valid
from .model import HeightMap, LevelerConfig


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


MAP_SUFFIX = ".gshmap"
DEFAULT_GRID_SPACING = 10.0

PathLike = Union[str, Path]


class MalformedFileError(HeightMapError):
    """Raised when a document cannot be parsed into a :class:`HeightMap`."""


def dumps_height_map(height_map: HeightMap, config: Optional[LevelerConfig] = None) -> str:
    """Serialize ``height_map`` as indented JSON.

    ``config`` replaces the map's embedded configuration when given, which is
    how the current probing settings end up inside a saved file.
    """

    if config is not None:
        height_map = height_map.model_copy(update={"config": config})
    return height_map.model_dump_json(by_alias=True, indent=2, exclude_none=True)


def loads_height_map(text: str, validate: bool = True) -> HeightMap:
    """Parse a JSON document produced by :func:`dumps_height_map`.

    Raises :class:`MalformedFileError` when the text is not a height map and,
    if ``validate`` is set, :class:`~surface_leveler.heightmap.builder.InvalidMapError`
    when the map cannot support interpolation.
    """

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedFileError(f"Failed to parse map file: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedFileError("Failed to parse map file: expected a JSON object")
    try:
        height_map = HeightMap.model_validate(payload)
    except ValidationError as exc:
        raise MalformedFileError(f"Failed to parse map file: {exc}") from exc

    if validate:
        require_valid(height_map)
    return height_map


def save_height_map(
    height_map: HeightMap, path: PathLike, config: Optional[LevelerConfig] = None
) -> Path:
    """Write ``height_map`` to ``path`` and return the resolved path."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dumps_height_map(height_map, config), encoding="utf-8")
    _LOGGER.info("Saved height map with %d points to %s", len(height_map.points), target)
    return target


def load_height_map(path: PathLike, validate: bool = True) -> HeightMap:
    """Read a height map document from ``path``."""

    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedFileError(f"Failed to parse map file: {exc}") from exc
    height_map = loads_height_map(text, validate=validate)
    _LOGGER.info("Loaded height map with %d points from %s", len(height_map.points), source)
    return height_map


def default_map_filename(now: Optional[datetime] = None) -> str:
    """File name used when exporting a map, e.g. ``height_map_2024-05-01.gshmap``."""

    stamp = (now or datetime.now()).strftime("%Y-%m-%d")
    return f"height_map_{stamp}{MAP_SUFFIX}"


def suggest_grid_spacing(height_map: HeightMap) -> float:
    """Grid spacing to restore from a loaded map.

    The embedded configuration wins; otherwise the gap between the first two
    distinct X columns is used.
    """

    if height_map.config is not None:
        return height_map.config.grid_spacing
    columns = height_map.distinct_x()
    if len(columns) > 1:
        return columns[1] - columns[0]
    return DEFAULT_GRID_SPACING


__all__ = [
    "MAP_SUFFIX",
    "MalformedFileError",
    "dumps_height_map",
    "loads_height_map",
    "save_height_map",
    "load_height_map",
    "default_map_filename",
    "suggest_grid_spacing",
]
