"""FastAPI application factory wiring the leveling routes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from surface_leveler.api.routes_gcode import router as gcode_router
from surface_leveler.api.routes_heightmap import router as heightmap_router
from surface_leveler.core.state import app_state


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


def _create_app() -> FastAPI:
    """Internal helper to construct the FastAPI application."""

    app = FastAPI(title="Surface Leveler API", version="1.0")

    allowed_origins: List[str] = [
        "http://localhost",
        "http://127.0.0.1",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(heightmap_router)
    app.include_router(gcode_router)

    @app.get("/health")
    async def health() -> dict:
        """Simple health check endpoint."""

        return {"status": "ok", "map": app_state.read().height_map is not None}

    _LOGGER.info("Surface Leveler API ready")
    return app


app = _create_app()

__all__ = ["app"]
