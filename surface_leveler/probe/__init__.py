"""Probe grid planning and probe result collection."""

from .planner import (
    GridSpec,
    ProbeResult,
    ProbeRun,
    collect_probe_results,
    generate_grid,
    parse_prb,
    probe_commands,
)

__all__ = [
    "GridSpec",
    "ProbeResult",
    "ProbeRun",
    "generate_grid",
    "parse_prb",
    "probe_commands",
    "collect_probe_results",
]
