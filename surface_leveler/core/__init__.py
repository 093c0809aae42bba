"""Core utilities for orchestration and shared state."""

from .orchestrator import Orchestrator, OrchestratorError, Prober, ProbingError
from .state import AppState, AppStateStore, app_state

__all__ = [
    "Orchestrator",
    "OrchestratorError",
    "Prober",
    "ProbingError",
    "AppState",
    "AppStateStore",
    "app_state",
]
