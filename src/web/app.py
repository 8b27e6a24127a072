"""
FastAPI application factory for the scan status API.

Routes:
- /api/status -> pipeline status + counters
- /api/detections -> latest overlay detections
- /api/results -> recent decoded results
- /api/model/reload -> one explicit model reload
- /api/camera/{device_id} -> switch camera
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from observation.base import ObservationSource
from pipeline.engine import PipelineEngine
from .routes import api


def create_app(
    engine: Optional[PipelineEngine] = None,
    source_factory: Optional[Callable[[int], ObservationSource]] = None,
) -> FastAPI:
    """Create the FastAPI app bound to a running engine."""
    app = FastAPI(
        title="Barcode Scan Pipeline",
        version="0.1.0",
        description="Status and results of the camera barcode scan pipeline",
    )

    # CORS for development (Vite dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine
    app.state.source_factory = source_factory

    app.include_router(api.router, prefix="/api")

    return app
