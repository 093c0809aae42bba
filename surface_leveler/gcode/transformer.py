"""Rewrite G-code so every linear move follows a probed height map.

The engine is a single pass over the program. Per-call state (tracked position
and positioning mode) lives in an immutable :class:`TransformState` that is
threaded through :func:`process_line`, so one call never observes another's
state. Output is produced lazily by :func:`iter_transform_gcode`; callers that
want to abort a large rewrite simply stop iterating.
"""

from __future__ import annotations

import logging
import math
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Literal, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from surface_leveler.heightmap.interpolation import HeightMapInterpolator
from surface_leveler.heightmap.model import HeightMap, LevelerConfig


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


PROVENANCE_MARKER = "; Height Map Applied by surface_leveler"
OUTSIDE_BOUNDS_WARNING = (
    "Warning: G-code extends outside height map bounds. "
    "Z-offset will be extrapolated from nearest edge points."
)
SEGMENT_DECIMALS = 4

_RAPID_RE = re.compile(r"^G0?0(?=[\sXYZF])", re.IGNORECASE)
_LINEAR_RE = re.compile(r"^G0?1(?=[\sXYZF])", re.IGNORECASE)
_MODE_RE = re.compile(r"G0*9([01])(?![\d.])", re.IGNORECASE)
_NUMBER = r"\s*([-+]?(?:\d+\.?\d*|\.\d+))"
_AXIS_RE = {axis: re.compile(axis + _NUMBER, re.IGNORECASE) for axis in "XYZF"}
_INLINE_COMMENT_RE = re.compile(r"\([^)]*\)|;.*$")

MoveType = Literal["G0", "G1"]


class TransformOptions(BaseModel):
    """Tunables for :func:`transform_gcode`."""

    segment_length: float = 1.0
    warn_outside_bounds: bool = True

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("segment_length")
    @classmethod
    def _validate_segment_length(cls, value: float) -> float:
        length = float(value)
        if length <= 0:
            raise ValueError("segment_length must be positive")
        return length

    @classmethod
    def from_config(cls, config: LevelerConfig, warn_outside_bounds: bool = True) -> "TransformOptions":
        return cls(segment_length=config.segment_length, warn_outside_bounds=warn_outside_bounds)


class TransformState(NamedTuple):
    """Nominal tool position and modal flags carried between lines."""

    current_x: float = 0.0
    current_y: float = 0.0
    current_z: float = 0.0
    absolute_mode: bool = True
    bounds_warning_emitted: bool = False


class TransformResult(BaseModel):
    """Rewritten program plus advisory warnings."""

    rewritten_program: str
    warnings: List[str]


class BoundsReport(BaseModel):
    """Coordinate envelope of a program compared to a map's bounds."""

    valid: bool
    gcode_min_x: float
    gcode_max_x: float
    gcode_min_y: float
    gcode_max_y: float


class ParsedMove(NamedTuple):
    move_type: MoveType
    x: float
    y: float
    z: float
    feed: Optional[float]
    has_x: bool
    has_y: bool
    has_z: bool
    comment: str


ZOffset = Callable[[float, float], float]


def _axis_value(text: str, axis: str) -> Optional[float]:
    match = _AXIS_RE[axis].search(text)
    return float(match.group(1)) if match else None


def parse_move(line: str, state: TransformState) -> Optional[ParsedMove]:
    """Parse a G0/G1 line; ``None`` for anything else.

    Axes missing from the line inherit the tracked position.
    """

    trimmed = line.strip()
    if _RAPID_RE.match(trimmed):
        move_type: MoveType = "G0"
    elif _LINEAR_RE.match(trimmed):
        move_type = "G1"
    else:
        return None

    comments = _INLINE_COMMENT_RE.findall(trimmed)
    words = _INLINE_COMMENT_RE.sub(" ", trimmed)
    x = _axis_value(words, "X")
    y = _axis_value(words, "Y")
    z = _axis_value(words, "Z")
    feed = _axis_value(words, "F")
    return ParsedMove(
        move_type=move_type,
        x=state.current_x if x is None else x,
        y=state.current_y if y is None else y,
        z=state.current_z if z is None else z,
        feed=feed,
        has_x=x is not None,
        has_y=y is not None,
        has_z=z is not None,
        comment=" ".join(comment.strip() for comment in comments),
    )


def _format_number(value: float) -> str:
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def build_move_line(
    move_type: MoveType,
    x: Optional[float],
    y: Optional[float],
    z: float,
    feed: Optional[float] = None,
    comment: str = "",
) -> str:
    """Format a motion line; X/Y are omitted when ``None``, Z is always written."""

    words = [move_type]
    if x is not None:
        words.append(f"X{x:.{SEGMENT_DECIMALS}f}")
    if y is not None:
        words.append(f"Y{y:.{SEGMENT_DECIMALS}f}")
    words.append(f"Z{z:.{SEGMENT_DECIMALS}f}")
    if feed is not None:
        words.append(f"F{_format_number(feed)}")
    if comment:
        words.append(comment)
    return " ".join(words)


def segment_line(
    start: Tuple[float, float, float],
    end: Tuple[float, float, float],
    segment_length: float,
) -> List[Tuple[float, float, float]]:
    """Split the straight path ``start -> end`` into pieces no longer than ``segment_length``.

    Only the planar distance decides the split; Z is interpolated linearly.
    """

    sx, sy, sz = start
    ex, ey, ez = end
    distance = math.hypot(ex - sx, ey - sy)
    if distance <= segment_length:
        return [end]

    count = math.ceil(distance / segment_length)
    pieces: List[Tuple[float, float, float]] = []
    for i in range(1, count + 1):
        t = i / count
        pieces.append(
            (
                round(sx + t * (ex - sx), SEGMENT_DECIMALS),
                round(sy + t * (ey - sy), SEGMENT_DECIMALS),
                round(sz + t * (ez - sz), SEGMENT_DECIMALS),
            )
        )
    return pieces


def transform_move(
    move: ParsedMove,
    state: TransformState,
    z_offset: ZOffset,
    segment_length: float,
) -> List[str]:
    """Lines replacing one parsed motion command."""

    if not move.has_x and not move.has_y:
        adjusted = move.z + z_offset(state.current_x, state.current_y)
        return [build_move_line(move.move_type, None, None, adjusted, move.feed, move.comment)]

    distance = math.hypot(move.x - state.current_x, move.y - state.current_y)
    if distance <= segment_length:
        adjusted = move.z + z_offset(move.x, move.y)
        return [
            build_move_line(
                move.move_type,
                move.x if move.has_x else None,
                move.y if move.has_y else None,
                adjusted,
                move.feed,
                move.comment,
            )
        ]

    pieces = segment_line(
        (state.current_x, state.current_y, state.current_z),
        (move.x, move.y, move.z),
        segment_length,
    )
    lines: List[str] = []
    for x, y, z in pieces:
        first = not lines
        lines.append(
            build_move_line(
                move.move_type,
                x,
                y,
                z + z_offset(x, y),
                move.feed if first else None,
                move.comment if first else "",
            )
        )
    return lines


def process_line(
    line: str,
    state: TransformState,
    height_map: HeightMap,
    z_offset: ZOffset,
    options: TransformOptions,
) -> Tuple[List[str], TransformState, Optional[str]]:
    """Rewrite a single program line.

    Returns the output lines, the state for the next line and an optional
    warning raised by this line.
    """

    trimmed = line.strip()
    if not trimmed or trimmed.startswith(";") or trimmed.startswith("("):
        return [line], state, None

    mode = _MODE_RE.search(trimmed)
    if mode is not None:
        return [line], state._replace(absolute_mode=mode.group(1) == "0"), None

    if not state.absolute_mode:
        return [line], state, None

    move = parse_move(line, state)
    if move is None or not (move.has_x or move.has_y or move.has_z):
        return [line], state, None

    warning = None
    if (
        options.warn_outside_bounds
        and not state.bounds_warning_emitted
        and (move.has_x or move.has_y)
        and not height_map.bounds.contains(move.x, move.y)
    ):
        warning = OUTSIDE_BOUNDS_WARNING
        state = state._replace(bounds_warning_emitted=True)
        _LOGGER.warning("Move to (%.4f, %.4f) leaves the height map bounds", move.x, move.y)

    lines = transform_move(move, state, z_offset, options.segment_length)
    state = state._replace(current_x=move.x, current_y=move.y, current_z=move.z)
    return lines, state, warning


def header_lines(height_map: HeightMap) -> List[str]:
    """Comment block identifying the map applied to a program."""

    bounds = height_map.bounds
    min_x, max_x, min_y, max_y = (
        _format_number(value)
        for value in (bounds.min_x, bounds.max_x, bounds.min_y, bounds.max_y)
    )
    return [
        PROVENANCE_MARKER,
        f"; Map bounds: X[{min_x}, {max_x}] Y[{min_y}, {max_y}]",
        f"; Grid points: {len(height_map.points)}",
        "",
    ]


def iter_transform_gcode(
    lines: Iterable[str],
    height_map: HeightMap,
    options: Optional[TransformOptions] = None,
    warnings: Optional[List[str]] = None,
) -> Iterator[str]:
    """Lazily yield the rewritten program, header first.

    Warnings are appended to ``warnings`` as they arise when a list is given.
    """

    options = options or TransformOptions()
    z_offset = HeightMapInterpolator(height_map).z_offset
    state = TransformState()

    yield from header_lines(height_map)
    for line in lines:
        output, state, warning = process_line(line, state, height_map, z_offset, options)
        if warning is not None and warnings is not None:
            warnings.append(warning)
        yield from output


def transform_gcode(
    program: str,
    height_map: HeightMap,
    options: Optional[TransformOptions] = None,
) -> TransformResult:
    """Apply ``height_map`` to every linear move in ``program``."""

    options = options or TransformOptions()
    warnings: List[str] = []
    source = program.split("\n")
    output = list(iter_transform_gcode(source, height_map, options, warnings))
    _LOGGER.info(
        "Transformed %d lines into %d lines (segment length %.4f)",
        len(source),
        len(output),
        options.segment_length,
    )
    return TransformResult(rewritten_program="\n".join(output), warnings=warnings)


def has_height_map_applied(program: str) -> bool:
    """Whether ``program`` was already produced by :func:`transform_gcode`."""

    return any(line.strip() == PROVENANCE_MARKER for line in program.splitlines())


def validate_gcode_bounds(program: str, height_map: HeightMap) -> BoundsReport:
    """Report the X/Y envelope of ``program`` against the map bounds.

    Each line is scanned independently; no modal state is tracked. Comment
    text is ignored.
    """

    xs: List[float] = []
    ys: List[float] = []
    for line in program.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(";") or trimmed.startswith("("):
            continue
        words = _INLINE_COMMENT_RE.sub(" ", trimmed)
        x = _axis_value(words, "X")
        y = _axis_value(words, "Y")
        if x is not None:
            xs.append(x)
        if y is not None:
            ys.append(y)

    bounds = height_map.bounds
    min_x, max_x = (min(xs), max(xs)) if xs else (math.inf, -math.inf)
    min_y, max_y = (min(ys), max(ys)) if ys else (math.inf, -math.inf)
    valid = (
        min_x >= bounds.min_x
        and max_x <= bounds.max_x
        and min_y >= bounds.min_y
        and max_y <= bounds.max_y
    )
    return BoundsReport(
        valid=valid,
        gcode_min_x=min_x if xs else 0.0,
        gcode_max_x=max_x if xs else 0.0,
        gcode_min_y=min_y if ys else 0.0,
        gcode_max_y=max_y if ys else 0.0,
    )


__all__ = [
    "PROVENANCE_MARKER",
    "OUTSIDE_BOUNDS_WARNING",
    "TransformOptions",
    "TransformState",
    "TransformResult",
    "BoundsReport",
    "ParsedMove",
    "parse_move",
    "build_move_line",
    "segment_line",
    "transform_move",
    "process_line",
    "header_lines",
    "iter_transform_gcode",
    "transform_gcode",
    "has_height_map_applied",
    "validate_gcode_bounds",
]
